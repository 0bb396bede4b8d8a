"""
Database module with abstraction layer.

This module provides:
- DatabaseAdapter interface: Abstract base class for engine construction
- SQLiteAdapter: SQLite-specific implementation (default)
- RowStore: Interface the service layer uses to read and write shortened urls
- Session management: Database session creation and management
"""

from urlshortener.db.interface import DatabaseAdapter
from urlshortener.db.repository import RowStore, SQLModelRowStore
from urlshortener.db.session import get_session, async_session_maker, engine, init_models

__all__ = [
    "DatabaseAdapter",
    "RowStore",
    "SQLModelRowStore",
    "get_session",
    "async_session_maker",
    "engine",
    "init_models",
]
