"""
Claim/Reclaim Resolver - the single exit from escrow.

After settlement exactly one of the two paths succeeds:

- claim:   a winner exists and the caller is that winner
- reclaim: no winner exists and the caller is the seller

Both consume the same one-shot release flag, so whichever runs second gets
AlreadyClaimed.
"""

from typing import Callable

from fhenft.core.auction.escrow import EscrowLedger
from fhenft.core.auction.events import EventKind, EventLog
from fhenft.core.auction.model import Auction, AuctionState
from fhenft.core.errors import AlreadyClaimed, InvalidState, Unauthorized
from fhenft.utils.logger import get_logger

logger = get_logger("resolver")


class ClaimResolver:
    def __init__(self, escrow: EscrowLedger, events: EventLog, clock: Callable[[], int]):
        self.escrow = escrow
        self.events = events
        self.clock = clock

    def _check_releasable(self, auction: Auction) -> None:
        if auction.state != AuctionState.SETTLED:
            raise InvalidState(
                f"Auction is not settled (state: {auction.state.name})",
                {"auction_id": auction.auction_id},
            )
        if auction.asset_released:
            raise AlreadyClaimed(
                "Asset already released",
                {"auction_id": auction.auction_id, "released_to": auction.released_to},
            )

    def claim(self, auction: Auction, caller: str) -> None:
        """Release the asset to the revealed winner."""
        self._check_releasable(auction)
        if not auction.has_winner:
            raise InvalidState("Auction has no winner", {"auction_id": auction.auction_id})
        if caller != auction.winner:
            logger.warning(f"Claim on auction {auction.auction_id} by non-winner {caller}")
            raise Unauthorized("Only the winner can claim", {"auction_id": auction.auction_id, "caller": caller})

        self.escrow.release(auction, caller)
        self.events.emit(EventKind.ASSET_CLAIMED, auction.auction_id, self.clock(), winner=caller)

    def reclaim(self, auction: Auction, caller: str) -> None:
        """Return the asset to the seller when nobody won."""
        self._check_releasable(auction)
        if auction.has_winner:
            raise InvalidState("Auction has a winner; the asset goes to the winner", {"auction_id": auction.auction_id})
        if caller != auction.seller:
            logger.warning(f"Reclaim on auction {auction.auction_id} by non-seller {caller}")
            raise Unauthorized("Only the seller can reclaim", {"auction_id": auction.auction_id, "caller": caller})

        self.escrow.release(auction, caller)
        self.events.emit(EventKind.ASSET_RECLAIMED, auction.auction_id, self.clock(), seller=caller)
