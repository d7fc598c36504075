"""Storage backends for the hybrid store."""

from .base import DocumentRecord, ScoredRecord, StorageBackend
from .duckdb import DuckDBStorage
from .memory import InMemoryStorage

__all__ = [
    "DocumentRecord",
    "ScoredRecord",
    "StorageBackend",
    "DuckDBStorage",
    "InMemoryStorage",
]
