"""
FHENFT Auction Module.

Confidential sealed-bid auctions over escrowed NFTs:
- Escrow of the auctioned asset
- Encrypted bid ingestion with an oblivious floor
- Homomorphic running maximum
- Oracle-attested settlement
- Winner claim / seller reclaim
"""

from fhenft.core.auction.model import (
    Auction,
    AuctionState,
    AuctionView,
    DecryptionRequest,
    EncryptedMaxState,
    RequestStatus,
    SealedBid,
    SettlementMode,
)
from fhenft.core.auction.events import AuctionEvent, EventKind, EventLog
from fhenft.core.auction.escrow import EscrowLedger
from fhenft.core.auction.tracker import EncryptedMaxTracker
from fhenft.core.auction.ingestion import BidIngestionGate
from fhenft.core.auction.settlement import DecryptionRequestTable, SettlementOracleBridge
from fhenft.core.auction.resolver import ClaimResolver
from fhenft.core.auction.engine import AuctionEngine

__all__ = [
    # Records
    "Auction",
    "AuctionState",
    "AuctionView",
    "DecryptionRequest",
    "EncryptedMaxState",
    "RequestStatus",
    "SealedBid",
    "SettlementMode",
    # Events
    "AuctionEvent",
    "EventKind",
    "EventLog",
    # Components
    "EscrowLedger",
    "EncryptedMaxTracker",
    "BidIngestionGate",
    "DecryptionRequestTable",
    "SettlementOracleBridge",
    "ClaimResolver",
    "AuctionEngine",
]
