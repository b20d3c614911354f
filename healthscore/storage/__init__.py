"""
Storage layer for daily metrics, score snapshots, actions and alerts.

The scoring core depends only on the MetricsReader and ScoreRepository
interfaces; DuckDB is the single shipped implementation.
"""

from functools import lru_cache

from healthscore.config import get_settings

from .base import MetricsReader, ScoreRepository, StorageBackend
from .duckdb_storage import DuckDBStorage, StorageError


@lru_cache
def get_storage() -> StorageBackend:
    """
    Get cached storage backend instance (singleton).

    Returns:
        StorageBackend implementation instance
    """
    settings = get_settings()
    return DuckDBStorage(db_path=settings.db_path)


__all__ = [
    "MetricsReader",
    "ScoreRepository",
    "StorageBackend",
    "DuckDBStorage",
    "StorageError",
    "get_storage",
]
