"""
Escrow Ledger - custody of auctioned assets.

The engine's contract identity holds each asset from auction creation until
exactly one release: to the winner, or back to the seller. Only the
claim/reclaim resolver calls ``release``.
"""

import threading
from typing import Dict, Iterable, Optional

from fhenft.core.auction.model import Auction
from fhenft.core.errors import (
    AlreadyClaimed,
    AssetAlreadyEscrowed,
    InvalidArgument,
    Unauthorized,
)
from fhenft.core.registry import AssetRef, AssetRegistry
from fhenft.utils.logger import get_logger

logger = get_logger("escrow")


class EscrowLedger:
    """
    Tracks which auction holds which asset and moves custody in and out.

    Args:
        registry: Asset registry providing ownership and transfer primitives
        custodian: The engine's contract identity
    """

    def __init__(self, registry: AssetRegistry, custodian: str):
        self.registry = registry
        self.custodian = custodian
        self._held: Dict[AssetRef, int] = {}
        self._lock = threading.Lock()

    # =========================================================================
    # Deposit
    # =========================================================================

    def check_deposit(self, seller: str, asset: AssetRef) -> None:
        """
        Verify the seller may escrow the asset, without moving it.

        Raises:
            AssetAlreadyEscrowed: Another auction holds the asset
            InvalidArgument: The asset does not exist
            Unauthorized: Seller is not the holder, or the engine has no transfer authority
        """
        with self._lock:
            holder = self._held.get(asset)
        if holder is not None:
            raise AssetAlreadyEscrowed(
                "Asset is already escrowed by another auction",
                {"asset": str(asset), "auction_id": holder},
            )

        try:
            owner = self.registry.owner_of(asset)
            approved = self.registry.get_approved(asset)
            operator = self.registry.is_approved_for_all(asset.collection, seller, self.custodian)
        except LookupError as exc:
            raise InvalidArgument(f"Unknown asset {asset}") from exc

        if owner != seller:
            raise Unauthorized("Caller does not hold the asset", {"asset": str(asset), "caller": seller})

        if approved != self.custodian and not operator:
            raise Unauthorized(
                "Engine has not been granted transfer authority for the asset",
                {"asset": str(asset)},
            )

    def deposit(self, auction_id: int, seller: str, asset: AssetRef) -> None:
        """Move the asset from seller into custody for auction_id."""
        self.check_deposit(seller, asset)

        with self._lock:
            # Re-check under the lock: two creations may race for one asset
            if asset in self._held:
                raise AssetAlreadyEscrowed("Asset is already escrowed by another auction", {"asset": str(asset)})
            try:
                self.registry.transfer_from(self.custodian, seller, self.custodian, asset)
            except PermissionError as exc:
                raise Unauthorized(str(exc), {"asset": str(asset)}) from exc
            self._held[asset] = auction_id

        logger.info(f"Escrowed {asset} from {seller} for auction {auction_id}")

    # =========================================================================
    # Release
    # =========================================================================

    def release(self, auction: Auction, recipient: str) -> None:
        """
        Transfer the asset out of custody, once.

        Raises:
            AlreadyClaimed: The asset already left escrow
        """
        if auction.asset_released:
            raise AlreadyClaimed(
                "Asset already released",
                {"auction_id": auction.auction_id, "released_to": auction.released_to},
            )

        with self._lock:
            self.registry.transfer_from(self.custodian, self.custodian, recipient, auction.asset)
            self._held.pop(auction.asset, None)

        auction.asset_released = True
        auction.released_to = recipient

        logger.info(f"Released {auction.asset} from auction {auction.auction_id} to {recipient}")

    # =========================================================================
    # Queries
    # =========================================================================

    def holder_of(self, asset: AssetRef) -> Optional[int]:
        """Auction id currently holding the asset, if any."""
        with self._lock:
            return self._held.get(asset)

    def held_count(self) -> int:
        with self._lock:
            return len(self._held)

    def restore(self, auctions: Iterable[Auction]) -> None:
        """Rebuild the custody index from persisted auctions."""
        with self._lock:
            self._held = {a.asset: a.auction_id for a in auctions if not a.asset_released}
