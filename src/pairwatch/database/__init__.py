"""
Database package for SQLAlchemy models and the snapshot gateway.
"""

from .models import Base, SnapshotDB
from .async_session import AsyncDatabaseManager, get_async_db_manager
from .gateway import PersistenceGateway, decode_pairs, encode_pairs

__all__ = [
    "Base",
    "SnapshotDB",
    "AsyncDatabaseManager",
    "get_async_db_manager",
    "PersistenceGateway",
    "decode_pairs",
    "encode_pairs",
]
