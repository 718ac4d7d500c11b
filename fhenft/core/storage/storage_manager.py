import json
from pathlib import Path
from typing import List, Optional

from fhenft.core.auction.events import AuctionEvent
from fhenft.core.auction.model import Auction, DecryptionRequest
from fhenft.core.storage.sqlite_adapter import SQLiteAdapter
from fhenft.utils.logger import get_logger

logger = get_logger("storage.manager")


class StorageManager:
    """
    Manages persistent storage for the auction engine.

    Coordinates data persistence using SQLite adapter.
    Handles:
    - Auction records (JSON documents, upserted on every change)
    - The decryption-request table
    - The event log (append-only)
    - Metadata (next auction id)

    Ciphertexts themselves live in the encryption substrate; only their
    handles are stored here.
    """

    def __init__(self, data_dir: Path, db_name: str = "auctions.db"):
        self.data_dir = Path(data_dir)
        self.db_path = self.data_dir / db_name
        self.adapter = SQLiteAdapter(self.db_path)

        logger.info(f"StorageManager initialized at {self.db_path}")

    def close(self):
        self.adapter.close()

    # =========================================================================
    # Auctions & Requests
    # =========================================================================

    def persist_auction(
        self,
        auction: Auction,
        requests: List[DecryptionRequest],
        next_auction_id: int,
    ):
        """Atomically persist an auction, its requests and the id counter."""
        self.adapter.save_records(
            (auction.auction_id, int(auction.state), json.dumps(auction.to_dict())),
            [(r.request_id, r.auction_id, json.dumps(r.to_dict())) for r in requests],
            [("next_auction_id", str(next_auction_id))],
        )

    def load_auctions(self) -> List[Auction]:
        return [Auction.from_dict(json.loads(data)) for data in self.adapter.get_all_auctions()]

    def get_auction(self, auction_id: int) -> Optional[Auction]:
        data = self.adapter.get_auction(auction_id)
        return Auction.from_dict(json.loads(data)) if data else None

    def load_requests(self) -> List[DecryptionRequest]:
        return [DecryptionRequest.from_dict(json.loads(data)) for data in self.adapter.get_all_requests()]

    def get_next_auction_id(self) -> int:
        value = self.adapter.get_engine_meta("next_auction_id")
        return int(value) if value else 0

    # =========================================================================
    # Event Log
    # =========================================================================

    def persist_event(self, event: AuctionEvent):
        """Append one event. Used as the EventLog sink."""
        self.adapter.append_event(event.sequence, event.auction_id, json.dumps(event.to_dict()))

    def load_events(self) -> List[AuctionEvent]:
        return [AuctionEvent.from_dict(json.loads(data)) for data in self.adapter.get_all_events()]

    def get_event_count(self) -> int:
        return self.adapter.get_events_count()
