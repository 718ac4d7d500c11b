import sqlite3
import threading
from pathlib import Path
from typing import List, Optional, Tuple

from fhenft.utils.logger import get_logger

logger = get_logger("storage.sqlite")


class SQLiteAdapter:
    """
    SQLite backend for persistent storage.

    Tables:
    1. auctions: one JSON document per auction id (upserted on every change)
    2. decryption_requests: the request arena, keyed by request id
    3. events: append-only event log, keyed by sequence number
    4. engine_state: small metadata values (next auction id)
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._conn_local = threading.local()

        # Ensure directory exists
        if not db_path.parent.exists():
            db_path.parent.mkdir(parents=True, exist_ok=True)

        self._init_schema()

    def _get_conn(self) -> sqlite3.Connection:
        """Get or create connection for current thread."""
        if not hasattr(self._conn_local, "conn"):
            self._conn_local.conn = sqlite3.connect(
                self.db_path,
                timeout=30.0,
                check_same_thread=False
            )
            self._conn_local.conn.row_factory = sqlite3.Row
            # Enable WAL mode for better concurrency
            self._conn_local.conn.execute("PRAGMA journal_mode=WAL;")
            self._conn_local.conn.execute("PRAGMA synchronous=NORMAL;")
        return self._conn_local.conn

    def _init_schema(self):
        """Initialize database schema."""
        conn = self._get_conn()
        with conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS auctions (
                    auction_id INTEGER PRIMARY KEY,
                    state INTEGER NOT NULL,
                    data TEXT NOT NULL
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS decryption_requests (
                    request_id INTEGER PRIMARY KEY,
                    auction_id INTEGER NOT NULL,
                    data TEXT NOT NULL
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_request_auction ON decryption_requests(auction_id);")

            # Events are only ever inserted
            conn.execute("""
                CREATE TABLE IF NOT EXISTS events (
                    sequence INTEGER PRIMARY KEY,
                    auction_id INTEGER NOT NULL,
                    data TEXT NOT NULL
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_event_auction ON events(auction_id);")

            conn.execute("""
                CREATE TABLE IF NOT EXISTS engine_state (
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
            """)

    def close(self):
        if hasattr(self._conn_local, "conn"):
            self._conn_local.conn.close()
            del self._conn_local.conn

    # =========================================================================
    # Auction / Request Records
    # =========================================================================

    def save_records(
        self,
        auction: Tuple[int, int, str],
        requests: List[Tuple[int, int, str]],
        meta: List[Tuple[str, str]],
    ):
        """
        Atomically upsert one auction row with its request rows and metadata.

        Args:
            auction: (auction_id, state, data)
            requests: [(request_id, auction_id, data), ...]
            meta: [(key, value), ...]
        """
        conn = self._get_conn()
        with conn:
            conn.execute(
                "INSERT OR REPLACE INTO auctions (auction_id, state, data) VALUES (?, ?, ?)",
                auction
            )
            conn.executemany(
                "INSERT OR REPLACE INTO decryption_requests (request_id, auction_id, data) VALUES (?, ?, ?)",
                requests
            )
            conn.executemany(
                "INSERT OR REPLACE INTO engine_state (key, value) VALUES (?, ?)",
                meta
            )

    def get_all_auctions(self) -> List[str]:
        """Get all auction documents ordered by id."""
        conn = self._get_conn()
        cursor = conn.execute("SELECT data FROM auctions ORDER BY auction_id ASC")
        return [row['data'] for row in cursor]

    def get_auction(self, auction_id: int) -> Optional[str]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT data FROM auctions WHERE auction_id = ?", (auction_id,))
        row = cursor.fetchone()
        return row['data'] if row else None

    def get_all_requests(self) -> List[str]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT data FROM decryption_requests ORDER BY request_id ASC")
        return [row['data'] for row in cursor]

    # =========================================================================
    # Event Log
    # =========================================================================

    def append_event(self, sequence: int, auction_id: int, data: str):
        conn = self._get_conn()
        with conn:
            conn.execute(
                "INSERT OR IGNORE INTO events (sequence, auction_id, data) VALUES (?, ?, ?)",
                (sequence, auction_id, data)
            )

    def get_all_events(self) -> List[str]:
        """Get all events ordered by sequence (ASC)."""
        conn = self._get_conn()
        cursor = conn.execute("SELECT data FROM events ORDER BY sequence ASC")
        return [row['data'] for row in cursor]

    def get_events_count(self) -> int:
        conn = self._get_conn()
        cursor = conn.execute("SELECT COUNT(*) as cnt FROM events")
        return cursor.fetchone()['cnt']

    # =========================================================================
    # Engine State Operations
    # =========================================================================

    def set_engine_meta(self, key: str, value: str):
        conn = self._get_conn()
        with conn:
            conn.execute("INSERT OR REPLACE INTO engine_state (key, value) VALUES (?, ?)", (key, value))

    def get_engine_meta(self, key: str) -> Optional[str]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT value FROM engine_state WHERE key = ?", (key,))
        row = cursor.fetchone()
        return row['value'] if row else None
