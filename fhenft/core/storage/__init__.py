"""
Persistent Storage Module.

Provides SQLite-backed persistence for:
- Auction records
- The decryption-request table
- The event log
- Engine metadata
"""

from fhenft.core.storage.sqlite_adapter import SQLiteAdapter
from fhenft.core.storage.storage_manager import StorageManager

__all__ = ["SQLiteAdapter", "StorageManager"]
