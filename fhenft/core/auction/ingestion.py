"""
Bid Ingestion Gate - admission of encrypted bids.

Checks, in order: auction open, deadline, self-bid, input shape, input proof.
Accepted bids are clamped against the public floor without decryption
(``effective = bid >= min_bid ? bid : 0``) and handed to the tracker.

A bidder's resubmission replaces their earlier bid: the gate keeps each
bidder's latest clamped bid and has the tracker rebuild the maximum over
them. A resubmission does not count as a new bidder. Nothing here ever sees
or logs a plaintext amount.
"""

from typing import Callable

from fhenft.core.auction.events import EventKind, EventLog
from fhenft.core.auction.model import Auction, AuctionState, SealedBid
from fhenft.core.auction.tracker import EncryptedMaxTracker
from fhenft.core.errors import DeadlinePassed, InvalidArgument, InvalidProof, InvalidState, Unauthorized
from fhenft.fhe import FheExecutor, FheType
from fhenft.utils.logger import get_logger
from fhenft.utils.validation import validate_bid_input

logger = get_logger("ingestion")


class BidIngestionGate:
    """
    Validates encrypted bids and forwards them to the tracker.

    Args:
        executor: Encrypted execution bound to the engine contract
        tracker: Running-maximum tracker
        events: Engine event log
        clock: Returns the current time in seconds
    """

    def __init__(
        self,
        executor: FheExecutor,
        tracker: EncryptedMaxTracker,
        events: EventLog,
        clock: Callable[[], int],
    ):
        self.executor = executor
        self.tracker = tracker
        self.events = events
        self.clock = clock

    def place_bid(self, auction: Auction, bidder: str, ciphertext: bytes, proof: bytes) -> bool:
        """
        Accept one encrypted bid.

        Args:
            auction: Target auction (caller holds its lock)
            bidder: Authenticated caller identity
            ciphertext: 32-byte handle of an encrypted uint64
            proof: Input proof bound to (engine contract, bidder)

        Returns:
            True if this was the bidder's first bid on the auction

        Raises:
            InvalidState, DeadlinePassed, Unauthorized, InvalidArgument, InvalidProof
        """
        now = self.clock()

        if auction.state != AuctionState.ACTIVE:
            raise InvalidState(
                f"Auction is not accepting bids (state: {auction.state.name})",
                {"auction_id": auction.auction_id},
            )
        if now >= auction.end_time:
            raise DeadlinePassed("Bidding has closed", {"auction_id": auction.auction_id, "end_time": auction.end_time})
        if bidder == auction.seller:
            raise Unauthorized("Seller cannot bid on their own auction", {"auction_id": auction.auction_id})

        valid, err = validate_bid_input(ciphertext, proof)
        if not valid:
            raise InvalidArgument(err, {"auction_id": auction.auction_id})

        bid = self.executor.verify_input(bytes(ciphertext), bytes(proof), bidder)
        if bid is None:
            logger.warning(f"Rejected bid with invalid proof on auction {auction.auction_id} from {bidder}")
            raise InvalidProof("Input proof verification failed", {"auction_id": auction.auction_id})

        floor = self.executor.trivial_encrypt(auction.min_bid, FheType.EUINT64)
        zero = self.executor.trivial_encrypt(0, FheType.EUINT64)
        meets_floor = self.executor.ge(bid, floor)
        effective = self.executor.select(meets_floor, bid, zero)

        first_bid = not auction.has_bid_from(bidder)
        sealed_bids = dict(auction.sealed_bids)
        sealed_bids[bidder] = SealedBid(amount=effective, eligible=meets_floor)
        if first_bid:
            new_state = self.tracker.absorb(
                auction.encrypted_max, effective, self.tracker.bidder_ref(bidder), meets_floor
            )
        else:
            new_state = self.tracker.rebuild(sealed_bids.items())

        # Commit point: nothing above touched the auction record
        auction.sealed_bids = sealed_bids
        auction.encrypted_max = new_state
        if first_bid:
            auction.bidders.append(bidder)
            auction.bid_count += 1

        self.events.emit(
            EventKind.BID_PLACED,
            auction.auction_id,
            now,
            bidder=bidder,
            bid_count=auction.bid_count,
            replaced=not first_bid,
        )
        logger.info(
            f"Accepted encrypted bid on auction {auction.auction_id} from {bidder} "
            f"({'new bidder' if first_bid else 'replacement'}, {auction.bid_count} bidders)"
        )
        return first_bid
