"""
Auction records and lifecycle states.

Lifecycle (monotonic, never regresses):

    ACTIVE -> ENDED -> SETTLEMENT_PENDING -> SETTLED
    ACTIVE -> SETTLED                       (closed with zero bids)
    ACTIVE / ENDED -> SETTLED               (operator degraded close)

Records are never deleted; a settled and released auction stays readable for
audit.
"""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Dict, List, Optional

from fhenft.core.errors import InvalidState
from fhenft.core.registry import AssetRef
from fhenft.fhe import Ciphertext


# =============================================================================
# Enums
# =============================================================================


class AuctionState(IntEnum):
    """State of a sealed-bid auction."""
    ACTIVE = 0              # Accepting encrypted bids until end_time
    ENDED = 1               # Bidding closed, decryption not yet requested
    SETTLEMENT_PENDING = 2  # Waiting for the oracle callback
    SETTLED = 3             # Outcome revealed; claim or reclaim allowed


_ALLOWED_TRANSITIONS = {
    AuctionState.ACTIVE: {AuctionState.ENDED, AuctionState.SETTLED},
    AuctionState.ENDED: {AuctionState.SETTLEMENT_PENDING, AuctionState.SETTLED},
    AuctionState.SETTLEMENT_PENDING: {AuctionState.SETTLED},
    AuctionState.SETTLED: set(),
}


class SettlementMode(str, Enum):
    """How an auction reached SETTLED."""
    ORACLE = "oracle"
    NO_BIDS = "no_bids"
    DEGRADED = "degraded"


class RequestStatus(str, Enum):
    PENDING = "pending"
    FULFILLED = "fulfilled"
    SUPERSEDED = "superseded"


# =============================================================================
# Data Structures
# =============================================================================


def _ciphertext_from_hex(value: Optional[str]) -> Optional[Ciphertext]:
    return Ciphertext(bytes.fromhex(value[2:])) if value else None


@dataclass
class EncryptedMaxState:
    """
    Encrypted running maximum and its leader, updated in lock-step.

    has_leader is an encrypted flag set once any bid that met the floor has
    been absorbed, so an eligible bid of zero can still take the lead. All
    three fields are handles; none is ever decrypted before settlement.
    """
    max_ciphertext: Optional[Ciphertext] = None
    max_bidder_ref: Optional[Ciphertext] = None
    has_leader: Optional[Ciphertext] = None

    @property
    def initialized(self) -> bool:
        return None not in (self.max_ciphertext, self.max_bidder_ref, self.has_leader)

    def to_dict(self) -> dict:
        return {
            "max_ciphertext": self.max_ciphertext.hex() if self.max_ciphertext else None,
            "max_bidder_ref": self.max_bidder_ref.hex() if self.max_bidder_ref else None,
            "has_leader": self.has_leader.hex() if self.has_leader else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "EncryptedMaxState":
        return cls(
            max_ciphertext=_ciphertext_from_hex(data.get("max_ciphertext")),
            max_bidder_ref=_ciphertext_from_hex(data.get("max_bidder_ref")),
            has_leader=_ciphertext_from_hex(data.get("has_leader")),
        )


@dataclass(frozen=True)
class SealedBid:
    """A bidder's current floor-clamped bid and its encrypted floor check."""
    amount: Ciphertext
    eligible: Ciphertext

    def to_dict(self) -> dict:
        return {"amount": self.amount.hex(), "eligible": self.eligible.hex()}

    @classmethod
    def from_dict(cls, data: dict) -> "SealedBid":
        return cls(
            amount=_ciphertext_from_hex(data["amount"]),
            eligible=_ciphertext_from_hex(data["eligible"]),
        )


@dataclass(frozen=True)
class AuctionView:
    """Public read model. winner/winning_amount are empty until settlement."""
    seller: str
    asset: AssetRef
    end_time: int
    state: AuctionState
    winner: Optional[str]
    winning_amount: int
    min_bid: int


@dataclass
class Auction:
    """
    One auction over one escrowed asset.

    Attributes:
        auction_id: Monotonic identifier assigned at creation
        seller: Identity that escrowed the asset
        asset: The escrowed token
        end_time: Bids are valid while now < end_time
        min_bid: Public floor, enforced obliviously on each bid
        bid_count: Distinct bidders accepted
        sealed_bids: Latest clamped bid per bidder, in first-bid order
        pending_request_id: Index into the decryption-request table
        asset_released: One-shot release flag
    """
    auction_id: int
    seller: str
    asset: AssetRef
    end_time: int
    min_bid: int

    state: AuctionState = AuctionState.ACTIVE
    winner: Optional[str] = None
    winning_amount: int = 0
    bid_count: int = 0
    bidders: List[str] = field(default_factory=list)
    sealed_bids: Dict[str, SealedBid] = field(default_factory=dict)
    encrypted_max: EncryptedMaxState = field(default_factory=EncryptedMaxState)

    pending_request_id: Optional[int] = None
    settlement_mode: Optional[SettlementMode] = None
    asset_released: bool = False
    released_to: Optional[str] = None

    created_at: int = 0
    settled_at: Optional[int] = None

    @property
    def has_winner(self) -> bool:
        return self.winner is not None

    def has_bid_from(self, bidder: str) -> bool:
        return bidder in self.bidders

    def is_open(self, now: int) -> bool:
        return self.state == AuctionState.ACTIVE and now < self.end_time

    def check_transition(self, new_state: AuctionState) -> None:
        if new_state not in _ALLOWED_TRANSITIONS[self.state]:
            raise InvalidState(
                f"Cannot move auction from {self.state.name} to {new_state.name}",
                {"auction_id": self.auction_id},
            )

    def advance(self, new_state: AuctionState) -> None:
        self.check_transition(new_state)
        self.state = new_state

    def view(self) -> AuctionView:
        settled = self.state == AuctionState.SETTLED
        return AuctionView(
            seller=self.seller,
            asset=self.asset,
            end_time=self.end_time,
            state=self.state,
            winner=self.winner if settled else None,
            winning_amount=self.winning_amount if settled else 0,
            min_bid=self.min_bid,
        )

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> dict:
        return {
            "auction_id": self.auction_id,
            "seller": self.seller,
            "asset": self.asset.to_dict(),
            "end_time": self.end_time,
            "min_bid": self.min_bid,
            "state": int(self.state),
            "winner": self.winner,
            "winning_amount": self.winning_amount,
            "bid_count": self.bid_count,
            "bidders": list(self.bidders),
            "sealed_bids": {bidder: bid.to_dict() for bidder, bid in self.sealed_bids.items()},
            "encrypted_max": self.encrypted_max.to_dict(),
            "pending_request_id": self.pending_request_id,
            "settlement_mode": self.settlement_mode.value if self.settlement_mode else None,
            "asset_released": self.asset_released,
            "released_to": self.released_to,
            "created_at": self.created_at,
            "settled_at": self.settled_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Auction":
        mode = data.get("settlement_mode")
        return cls(
            auction_id=data["auction_id"],
            seller=data["seller"],
            asset=AssetRef.from_dict(data["asset"]),
            end_time=data["end_time"],
            min_bid=data["min_bid"],
            state=AuctionState(data["state"]),
            winner=data.get("winner"),
            winning_amount=data.get("winning_amount", 0),
            bid_count=data.get("bid_count", 0),
            bidders=list(data.get("bidders", [])),
            sealed_bids={bidder: SealedBid.from_dict(bid) for bidder, bid in data.get("sealed_bids", {}).items()},
            encrypted_max=EncryptedMaxState.from_dict(data.get("encrypted_max", {})),
            pending_request_id=data.get("pending_request_id"),
            settlement_mode=SettlementMode(mode) if mode else None,
            asset_released=data.get("asset_released", False),
            released_to=data.get("released_to"),
            created_at=data.get("created_at", 0),
            settled_at=data.get("settled_at"),
        )


@dataclass
class DecryptionRequest:
    """
    One entry of the decryption-request table.

    The auction points at its outstanding entry through pending_request_id.
    """
    request_id: int
    auction_id: int
    amount_handle: Ciphertext
    bidder_handle: Ciphertext
    issued_at: int
    status: RequestStatus = RequestStatus.PENDING

    def to_dict(self) -> dict:
        return {
            "request_id": self.request_id,
            "auction_id": self.auction_id,
            "amount_handle": self.amount_handle.hex(),
            "bidder_handle": self.bidder_handle.hex(),
            "issued_at": self.issued_at,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DecryptionRequest":
        return cls(
            request_id=data["request_id"],
            auction_id=data["auction_id"],
            amount_handle=Ciphertext(bytes.fromhex(data["amount_handle"][2:])),
            bidder_handle=Ciphertext(bytes.fromhex(data["bidder_handle"][2:])),
            issued_at=data["issued_at"],
            status=RequestStatus(data["status"]),
        )
