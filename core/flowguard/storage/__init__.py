"""Data-store adapters."""

from flowguard.storage.sqlite_store import SQLiteDataStore

__all__ = ["SQLiteDataStore"]
