"""
Auction event log.

Append-only record of everything externally observable about the engine.
Before an auction settles its events carry identities, counts and ciphertext
handles only; the first plaintext amount to appear is in AuctionSettled.
"""

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from fhenft.utils.logger import get_logger

logger = get_logger("events")


class EventKind(str, Enum):
    AUCTION_CREATED = "AuctionCreated"
    BID_PLACED = "BidPlaced"
    AUCTION_ENDED = "AuctionEnded"
    DECRYPTION_REQUESTED = "DecryptionRequested"
    DECRYPTION_REREQUESTED = "DecryptionRerequested"
    AUCTION_SETTLED = "AuctionSettled"
    DEGRADED_SETTLEMENT = "DegradedSettlement"
    ASSET_CLAIMED = "AssetClaimed"
    ASSET_RECLAIMED = "AssetReclaimed"


@dataclass(frozen=True)
class AuctionEvent:
    sequence: int
    kind: EventKind
    auction_id: int
    timestamp: int
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "sequence": self.sequence,
            "kind": self.kind.value,
            "auction_id": self.auction_id,
            "timestamp": self.timestamp,
            "payload": dict(self.payload),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AuctionEvent":
        return cls(
            sequence=data["sequence"],
            kind=EventKind(data["kind"]),
            auction_id=data["auction_id"],
            timestamp=data["timestamp"],
            payload=dict(data.get("payload", {})),
        )


class EventLog:
    """
    Thread-safe append-only event list.

    Args:
        sink: Optional callable invoked with every new event (persistence hook)
    """

    def __init__(self, sink: Optional[Callable[[AuctionEvent], None]] = None):
        self._events: List[AuctionEvent] = []
        self._sink = sink
        self._lock = threading.Lock()

    def emit(self, kind: EventKind, auction_id: int, timestamp: int, **payload) -> AuctionEvent:
        with self._lock:
            event = AuctionEvent(
                sequence=len(self._events),
                kind=kind,
                auction_id=auction_id,
                timestamp=timestamp,
                payload=payload,
            )
            self._events.append(event)
            if self._sink is not None:
                self._sink(event)

        logger.debug(f"{kind.value} auction={auction_id}")
        return event

    def restore(self, events: List[AuctionEvent]) -> None:
        with self._lock:
            self._events = sorted(events, key=lambda e: e.sequence)

    def all(self) -> List[AuctionEvent]:
        with self._lock:
            return list(self._events)

    def for_auction(self, auction_id: int) -> List[AuctionEvent]:
        with self._lock:
            return [e for e in self._events if e.auction_id == auction_id]

    def __len__(self) -> int:
        return len(self._events)
