"""
Hybrid document store.

``HybridStore`` owns the document lifecycle and exposes vector, lexical and
hybrid search over one corpus. Persistence is delegated to a
``StorageBackend``; embeddings come from an injected ``EmbeddingProvider``,
optionally fronted by an ``EmbeddingCache``.

Example usage:
    >>> store = await open_store(db_path="docs.duckdb", embedding_provider=provider)
    >>> ids = await store.insert([{"content": "cats purr", "metadata": {"kind": "pet"}}])
    >>> hits = await store.hybrid_search("cat", {"limit": 5, "filter": {"kind": "pet"}})
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Sequence
from typing import Any

from .cache import EmbeddingCache, embedding_cache_key
from .config import StoreConfig, resolve_db_path
from .embeddings import EmbeddingProvider, check_embeddings
from .errors import (
    DimensionMismatchError,
    DuplicateDocumentError,
    FilterError,
    NotFoundError,
    ValidationError,
)
from .filters import build_filters
from .logs import get_logger
from .models import (
    Document,
    DocumentInput,
    DocumentUpdate,
    HybridSearchOptions,
    SearchOptions,
    SearchResult,
    StoreStats,
    Vector,
    validate_metadata,
    validate_vector,
)
from .runtime import run_provider, run_storage
from .search import HybridSearchEngine, LexicalSearchEngine, SimilaritySearchEngine
from .storage import DocumentRecord, DuckDBStorage, InMemoryStorage, StorageBackend

logger = get_logger("store")


def _to_document(record: DocumentRecord) -> Document:
    return Document(
        id=record.id,
        content=record.content,
        metadata=record.metadata,
        embedding=record.embedding,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


class HybridStore:
    """Document store with vector, lexical, and fused search."""

    def __init__(
        self,
        config: StoreConfig,
        storage: StorageBackend | None = None,
        *,
        embedding_cache: EmbeddingCache | None = None,
    ) -> None:
        self.config = config
        self.storage: StorageBackend = storage if storage is not None else InMemoryStorage()
        self.embedding_cache = embedding_cache
        self._schema_ready = False

        self._similarity = SimilaritySearchEngine(
            self.storage, dimensions=config.dimensions, timeout=config.timeout
        )
        self._lexical = LexicalSearchEngine(self.storage, timeout=config.timeout)
        self._hybrid = HybridSearchEngine(
            lexical=self._lexical,
            similarity=self._similarity,
            embed_query=self._embed_query,
        )

    @property
    def dimensions(self) -> int:
        return self.config.dimensions

    @property
    def embedding_provider(self) -> EmbeddingProvider | None:
        return self.config.embedding_provider

    async def open(self) -> HybridStore:
        """Create or verify the backend schema. Idempotent."""
        if not self._schema_ready:
            await run_storage(
                "create_schema",
                self.storage.create_schema,
                self.config.dimensions,
                self.config.distance_metric,
                timeout=self.config.timeout,
            )
            self._schema_ready = True
        return self

    async def close(self) -> None:
        await run_storage("close", self.storage.close, timeout=self.config.timeout)
        self._schema_ready = False

    async def __aenter__(self) -> HybridStore:
        return await self.open()

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Document lifecycle
    # ------------------------------------------------------------------

    async def insert(self, documents: Iterable[DocumentInput | dict[str, Any]]) -> list[str]:
        """Insert documents and return their ids in input order.

        Documents without an embedding are embedded in one batched provider
        call. Either every document is stored or none is.
        """
        payloads = [DocumentInput.parse(doc) for doc in documents]
        if not payloads:
            return []

        ids = [payload.id or str(uuid.uuid4()) for payload in payloads]
        seen: set[str] = set()
        repeated: list[str] = []
        for doc_id in ids:
            if doc_id in seen:
                repeated.append(doc_id)
            seen.add(doc_id)
        if repeated:
            raise DuplicateDocumentError(
                "Duplicate ids within one insert batch.",
                operation="insert",
                document_ids=repeated,
            )

        metadata = [validate_metadata(payload.metadata) for payload in payloads]
        embeddings: list[Vector | None] = []
        for doc_id, payload in zip(ids, payloads):
            if payload.embedding is None:
                embeddings.append(None)
                continue
            embeddings.append(self._checked_vector(payload.embedding, "insert", [doc_id]))

        pending = [i for i, vector in enumerate(embeddings) if vector is None]
        if pending and self.embedding_provider is None:
            raise ValidationError(
                "Documents without embeddings require an embedding provider.",
                operation="insert",
                document_ids=[ids[i] for i in pending],
            )

        await self.open()
        if pending:
            generated = await self._embed_texts(
                [payloads[i].content for i in pending],
                operation="insert",
                document_ids=[ids[i] for i in pending],
            )
            for i, vector in zip(pending, generated):
                embeddings[i] = vector

        records = [
            DocumentRecord(
                id=doc_id,
                content=payload.content,
                metadata=meta,
                embedding=list(vector or []),
            )
            for doc_id, payload, meta, vector in zip(ids, payloads, metadata, embeddings)
        ]
        await run_storage(
            "insert",
            self.storage.insert_rows,
            records,
            timeout=self.config.timeout,
            document_ids=ids,
        )
        logger.info("Inserted documents", count=len(ids), embedded=len(pending))
        return ids

    async def get(self, doc_id: str) -> Document | None:
        """Return the document, or None when no document has this id."""
        self._check_id(doc_id, "get")
        await self.open()
        record = await run_storage(
            "get",
            self.storage.select_by_id,
            doc_id,
            timeout=self.config.timeout,
            document_ids=[doc_id],
        )
        return _to_document(record) if record is not None else None

    async def update(
        self,
        doc_id: str,
        update: DocumentUpdate | dict[str, Any],
    ) -> Document:
        """Update content, metadata and/or embedding of an existing document.

        New content without an explicit embedding is re-embedded; metadata-only
        updates never call the embedding provider.
        """
        payload = DocumentUpdate.parse(update)
        if payload.is_empty():
            raise ValidationError(
                "Update must set content, metadata or embedding.",
                operation="update",
                document_ids=[doc_id],
            )
        metadata = validate_metadata(payload.metadata) if payload.metadata is not None else None
        embedding = (
            self._checked_vector(payload.embedding, "update", [doc_id])
            if payload.embedding is not None
            else None
        )

        await self.open()
        current = await run_storage(
            "update",
            self.storage.select_by_id,
            doc_id,
            timeout=self.config.timeout,
            document_ids=[doc_id],
        )
        if current is None:
            raise NotFoundError(
                "Document not found.", operation="update", document_ids=[doc_id]
            )

        content_changed = payload.content is not None and payload.content != current.content
        if content_changed and embedding is None:
            if self.embedding_provider is None:
                raise ValidationError(
                    "Changing content requires an embedding or an embedding provider.",
                    operation="update",
                    document_ids=[doc_id],
                )
            [embedding] = await self._embed_texts(
                [payload.content], operation="update", document_ids=[doc_id]
            )

        updated = await run_storage(
            "update",
            self.storage.update_row,
            doc_id,
            content=payload.content,
            metadata=metadata,
            embedding=embedding,
            timeout=self.config.timeout,
            document_ids=[doc_id],
        )
        if updated is None:
            raise NotFoundError(
                "Document not found.", operation="update", document_ids=[doc_id]
            )
        logger.info(
            "Updated document",
            document_id=doc_id,
            reembedded=content_changed and payload.embedding is None,
        )
        return _to_document(updated)

    async def delete(self, doc_id: str) -> None:
        """Delete one document. Raises ``NotFoundError`` for unknown ids."""
        self._check_id(doc_id, "delete")
        await self.open()
        deleted = await run_storage(
            "delete",
            self.storage.delete_row,
            doc_id,
            timeout=self.config.timeout,
            document_ids=[doc_id],
        )
        if not deleted:
            raise NotFoundError(
                "Document not found.", operation="delete", document_ids=[doc_id]
            )
        logger.info("Deleted document", document_id=doc_id)

    async def delete_by_filter(self, metadata_filter: Any) -> int:
        """Delete every document matching *metadata_filter*; return the count."""
        filters = build_filters(metadata_filter)
        if not filters:
            raise FilterError(
                "delete_by_filter needs at least one condition; use clear() to remove everything.",
                operation="delete_by_filter",
            )
        await self.open()
        count = await run_storage(
            "delete_by_filter",
            self.storage.delete_where,
            filters,
            timeout=self.config.timeout,
        )
        logger.info("Deleted documents by filter", count=count, conditions=len(filters))
        return count

    async def clear(self) -> None:
        """Remove all documents from the store."""
        await self.open()
        await run_storage("clear", self.storage.truncate, timeout=self.config.timeout)
        logger.info("Cleared store")

    async def stats(self) -> StoreStats:
        await self.open()
        total = await run_storage("stats", self.storage.count, timeout=self.config.timeout)
        return StoreStats(
            total_documents=total,
            dimensions=self.config.dimensions,
            distance_metric=self.config.distance_metric,
            backend=self.storage.name,
        )

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search(
        self,
        query_text: str,
        options: SearchOptions | dict[str, Any] | None = None,
    ) -> list[SearchResult]:
        """Vector-only search for a text query (the query is embedded first)."""
        opts = SearchOptions.parse(options)
        build_filters(opts.filter)
        self._check_query_text(query_text, "search")
        await self.open()
        query_vector = await self._embed_query(query_text)
        return await self._similarity.search(query_vector, opts)

    async def search_by_embedding(
        self,
        embedding: Sequence[float],
        options: SearchOptions | dict[str, Any] | None = None,
    ) -> list[SearchResult]:
        """Vector-only search for a precomputed query vector."""
        opts = SearchOptions.parse(options)
        build_filters(opts.filter)
        vector = self._checked_vector(embedding, "search", [])
        await self.open()
        return await self._similarity.search(vector, opts)

    async def hybrid_search(
        self,
        query_text: str,
        options: HybridSearchOptions | dict[str, Any] | None = None,
    ) -> list[SearchResult]:
        """Lexical and vector search fused by weighted score.

        Results carry ``text_rank``, ``vector_rank`` and ``fused_score``.
        """
        opts = HybridSearchOptions.parse(options)
        build_filters(opts.filter)
        self._check_query_text(query_text, "hybrid_search")
        await self.open()
        return await self._hybrid.search(query_text, opts)

    # ------------------------------------------------------------------
    # Embedding helpers
    # ------------------------------------------------------------------

    def _checked_vector(self, values: Any, operation: str, document_ids: list[str]) -> Vector:
        vector = validate_vector(values)
        if len(vector) != self.config.dimensions:
            raise DimensionMismatchError(
                self.config.dimensions,
                len(vector),
                operation=operation,
                document_ids=document_ids,
            )
        return vector

    def _check_id(self, doc_id: str, operation: str) -> None:
        if not isinstance(doc_id, str) or not doc_id:
            raise ValidationError(
                "Document id must be a non-empty string.", operation=operation
            )

    def _check_query_text(self, query_text: str, operation: str) -> None:
        if not isinstance(query_text, str) or not query_text.strip():
            raise ValidationError("Query text must not be empty.", operation=operation)
        if self.embedding_provider is None:
            raise ValidationError(
                "Text queries require an embedding provider.", operation=operation
            )

    async def _embed_query(self, query_text: str) -> Vector:
        [vector] = await self._embed_texts([query_text], operation="embed_query")
        return vector

    async def _embed_texts(
        self,
        texts: list[str],
        *,
        operation: str,
        document_ids: Sequence[str] = (),
    ) -> list[Vector]:
        """Embed *texts* with one provider call covering every cache miss."""
        provider = self.embedding_provider
        if provider is None:
            raise ValidationError("No embedding provider configured.", operation=operation)

        namespace = getattr(provider, "cache_namespace", type(provider).__qualname__)
        results: list[Vector | None] = [None] * len(texts)
        keys: list[str] = []
        if self.embedding_cache is not None:
            for i, text in enumerate(texts):
                key = embedding_cache_key(namespace, text)
                keys.append(key)
                results[i] = self.embedding_cache.get(key)

        # Unique misses in first-seen order.
        missing = list(
            dict.fromkeys(texts[i] for i, vector in enumerate(results) if vector is None)
        )
        if missing:
            raw = await run_provider(
                operation,
                provider.embed(missing),
                timeout=self.config.timeout,
                document_ids=document_ids,
            )
            vectors = check_embeddings(
                raw, expected_count=len(missing), dimensions=self.config.dimensions
            )
            fresh = dict(zip(missing, vectors))
            for i, text in enumerate(texts):
                if results[i] is None:
                    results[i] = list(fresh[text])
                    if self.embedding_cache is not None:
                        self.embedding_cache.set(keys[i], fresh[text])
            logger.debug(
                "Embedded texts",
                operation=operation,
                requested=len(texts),
                provider_calls=1,
                embedded=len(missing),
            )
        return [vector for vector in results if vector is not None]


async def open_store(
    *,
    db_path: str | None = None,
    in_memory: bool = False,
    dimensions: int | None = None,
    distance_metric: str | None = None,
    embedding_provider: EmbeddingProvider | None = None,
    embedding_cache: EmbeddingCache | None = None,
    timeout: float | None = None,
) -> HybridStore:
    """
    Build and open a store.

    Uses an in-memory backend when ``in_memory`` is set, otherwise a DuckDB
    file resolved from ``db_path``, ``HYBRID_STORE_DB_PATH`` or the default.
    """
    config = StoreConfig.create(
        dimensions=dimensions,
        distance_metric=distance_metric,
        embedding_provider=embedding_provider,
        timeout=timeout,
    )
    storage: StorageBackend
    if in_memory:
        storage = InMemoryStorage()
    else:
        storage = DuckDBStorage(resolve_db_path(db_path))
    store = HybridStore(config, storage, embedding_cache=embedding_cache)
    return await store.open()
