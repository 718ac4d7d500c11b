"""
Unit tests for SQLite persistence.
"""

import pytest

from fhenft.core.auction import Auction, AuctionEvent, AuctionState, DecryptionRequest, EventKind, RequestStatus
from fhenft.core.registry import AssetRef
from fhenft.core.storage import SQLiteAdapter, StorageManager
from fhenft.fhe import Ciphertext, FheType

SELLER = "0x" + "5e" * 20
COLLECTION = "0x" + "c0" * 20


def handle(n: int, fhe_type: FheType = FheType.EUINT64) -> Ciphertext:
    return Ciphertext(bytes([n]) * 30 + bytes([fhe_type, 0]))


@pytest.fixture
def storage(tmp_path):
    manager = StorageManager(tmp_path / "data")
    yield manager
    manager.close()


class TestSQLiteAdapter:

    def test_schema_created(self, tmp_path):
        adapter = SQLiteAdapter(tmp_path / "nested" / "db.sqlite")
        assert (tmp_path / "nested" / "db.sqlite").exists()
        assert adapter.get_all_auctions() == []
        assert adapter.get_events_count() == 0

    def test_engine_meta(self, tmp_path):
        adapter = SQLiteAdapter(tmp_path / "db.sqlite")
        adapter.set_engine_meta("k", "v")
        assert adapter.get_engine_meta("k") == "v"
        assert adapter.get_engine_meta("missing") is None

    def test_events_insert_once(self, tmp_path):
        adapter = SQLiteAdapter(tmp_path / "db.sqlite")
        adapter.append_event(0, 0, '{"a": 1}')
        adapter.append_event(0, 0, '{"a": 2}')
        assert adapter.get_all_events() == ['{"a": 1}']


class TestStorageManager:

    def test_auction_roundtrip(self, storage):
        auction = Auction(
            auction_id=0,
            seller=SELLER,
            asset=AssetRef(COLLECTION, 9),
            end_time=1_700_000_060,
            min_bid=10,
            state=AuctionState.SETTLEMENT_PENDING,
            bid_count=2,
            bidders=["0x" + "a1" * 20, "0x" + "b2" * 20],
            pending_request_id=0,
            created_at=1_700_000_000,
        )
        auction.encrypted_max.max_ciphertext = handle(1)
        auction.encrypted_max.max_bidder_ref = handle(2, FheType.EADDRESS)
        request = DecryptionRequest(0, 0, handle(1), handle(2, FheType.EADDRESS), 1_700_000_061)

        storage.persist_auction(auction, [request], next_auction_id=1)

        [loaded] = storage.load_auctions()
        assert loaded == auction
        assert storage.get_auction(0) == auction
        assert storage.get_auction(1) is None
        assert storage.load_requests() == [request]
        assert storage.get_next_auction_id() == 1

    def test_upsert_replaces(self, storage):
        auction = Auction(0, SELLER, AssetRef(COLLECTION, 1), 100, 0)
        storage.persist_auction(auction, [], 1)
        auction.state = AuctionState.SETTLED
        auction.winner = "0x" + "a1" * 20
        storage.persist_auction(auction, [], 1)

        [loaded] = storage.load_auctions()
        assert loaded.state == AuctionState.SETTLED
        assert loaded.winner == auction.winner

    def test_request_status_update(self, storage):
        auction = Auction(0, SELLER, AssetRef(COLLECTION, 1), 100, 0)
        request = DecryptionRequest(0, 0, handle(1), handle(2, FheType.EADDRESS), 5)
        storage.persist_auction(auction, [request], 1)
        request.status = RequestStatus.SUPERSEDED
        storage.persist_auction(auction, [request], 1)
        assert storage.load_requests()[0].status == RequestStatus.SUPERSEDED

    def test_events(self, storage):
        storage.persist_event(AuctionEvent(0, EventKind.AUCTION_CREATED, 0, 10, {"seller": SELLER}))
        storage.persist_event(AuctionEvent(1, EventKind.BID_PLACED, 0, 11, {"bid_count": 1}))
        events = storage.load_events()
        assert [e.kind for e in events] == [EventKind.AUCTION_CREATED, EventKind.BID_PLACED]
        assert events[0].payload == {"seller": SELLER}
        assert storage.get_event_count() == 2

    def test_empty_database(self, storage):
        assert storage.load_auctions() == []
        assert storage.get_next_auction_id() == 0
