"""
hybrid_store - document store with vector, lexical and hybrid search.

Documents (text, JSON metadata, embedding) live in a DuckDB file or in
memory. Queries rank them by embedding similarity, by term coverage of the
query text, or by a weighted fusion of both.

Example usage:
    >>> from hybrid_store import open_store, GenAIEmbeddingProvider
    >>> store = await open_store(embedding_provider=GenAIEmbeddingProvider())
    >>> await store.insert([{"content": "The cat sat", "metadata": {"kind": "pet"}}])
    >>> results = await store.hybrid_search("cat", {"text_weight": 0.7, "vector_weight": 0.3})
"""

from .cache import EmbeddingCache, TTLEmbeddingCache
from .config import StoreConfig, resolve_db_path
from .embeddings import EmbeddingProvider, GenAIEmbeddingProvider
from .errors import (
    HybridStoreError,
    ValidationError,
    DuplicateDocumentError,
    DimensionMismatchError,
    FilterError,
    NotFoundError,
    EmbeddingError,
    OperationTimeoutError,
    StorageError,
)
from .filters import MetadataFilter, build_filters, parse_metadata_filters
from .models import (
    Document,
    DocumentInput,
    DocumentUpdate,
    HybridSearchOptions,
    SearchOptions,
    SearchResult,
    StoreStats,
)
from .storage import DuckDBStorage, InMemoryStorage, StorageBackend
from .store import HybridStore, open_store

__all__ = [
    # Store
    "HybridStore",
    "open_store",
    "StoreConfig",
    "resolve_db_path",
    # Models
    "Document",
    "DocumentInput",
    "DocumentUpdate",
    "SearchOptions",
    "HybridSearchOptions",
    "SearchResult",
    "StoreStats",
    # Filters
    "MetadataFilter",
    "build_filters",
    "parse_metadata_filters",
    # Embeddings
    "EmbeddingProvider",
    "GenAIEmbeddingProvider",
    "EmbeddingCache",
    "TTLEmbeddingCache",
    # Storage
    "StorageBackend",
    "DuckDBStorage",
    "InMemoryStorage",
    # Errors
    "HybridStoreError",
    "ValidationError",
    "DuplicateDocumentError",
    "DimensionMismatchError",
    "FilterError",
    "NotFoundError",
    "EmbeddingError",
    "OperationTimeoutError",
    "StorageError",
]
