"""
DuckDB storage backend for document persistence.
"""

from __future__ import annotations

import json
import threading
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import duckdb
import numpy as np

from ..distance import similarities
from ..errors import DuplicateDocumentError
from ..filters import MetadataFilter, matches_all
from .base import DocumentRecord, ScoredRecord, check_schema, rank_scored
from .text import query_terms

_COLUMNS = "id, seq, content, metadata_json, embedding, created_at, updated_at"
# Keeps IN (...) parameter lists bounded for large batches.
_ID_CHUNK = 500


def _chunks(items: Sequence[str], size: int = _ID_CHUNK) -> list[Sequence[str]]:
    return [items[start : start + size] for start in range(0, len(items), size)]


class DuckDBStorage:
    """DuckDB-backed persistence for documents and their embeddings.

    One connection is shared; calls are serialized with a lock because the
    store runs backend calls on worker threads.
    """

    name = "duckdb"

    def __init__(
        self,
        db_path: str,
        *,
        read_only: bool = False,
    ) -> None:
        if db_path == ":memory:":
            self.db_path = db_path
        else:
            self.db_path = str(Path(db_path).expanduser().resolve())
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.read_only = read_only
        self._conn = duckdb.connect(self.db_path, read_only=read_only)
        self._lock = threading.Lock()
        self.dimensions: int | None = None
        self.metric: str = "cosine"

    def close(self) -> None:
        """Close the underlying DuckDB connection."""
        with self._lock:
            self._conn.close()

    def create_schema(self, dimensions: int, metric: str) -> None:
        with self._lock:
            if not self.read_only:
                self._conn.execute("CREATE SEQUENCE IF NOT EXISTS documents_seq START 1")
                self._conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS store_config (
                        key VARCHAR NOT NULL,
                        value VARCHAR NOT NULL
                    );
                    """
                )
                # No PRIMARY KEY: ids are checked under the lock, and DuckDB
                # updates list columns in place only on unindexed tables.
                self._conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS documents (
                        id VARCHAR NOT NULL,
                        seq BIGINT NOT NULL DEFAULT nextval('documents_seq'),
                        content VARCHAR NOT NULL,
                        metadata_json VARCHAR NOT NULL DEFAULT '{}',
                        embedding DOUBLE[] NOT NULL,
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    );
                    """
                )

            stored = dict(self._conn.execute("SELECT key, value FROM store_config").fetchall())
            row = self._conn.execute("SELECT COUNT(*) FROM documents").fetchone()
            has_documents = bool(row and row[0])
            if stored and has_documents:
                check_schema(
                    int(stored["dimensions"]), str(stored["metric"]), dimensions, metric
                )
            elif not self.read_only:
                self._conn.execute("DELETE FROM store_config")
                self._conn.executemany(
                    "INSERT INTO store_config (key, value) VALUES (?, ?)",
                    [("dimensions", str(dimensions)), ("metric", metric)],
                )
            self.dimensions = dimensions
            self.metric = metric

    def insert_rows(self, records: Sequence[DocumentRecord]) -> None:
        if not records:
            return
        with self._lock:
            self._conn.execute("BEGIN TRANSACTION")
            try:
                existing = self._existing_ids([record.id for record in records])
                if existing:
                    raise DuplicateDocumentError(
                        "Documents already exist.",
                        operation="insert",
                        document_ids=existing,
                    )
                self._conn.executemany(
                    """
                    INSERT INTO documents (id, content, metadata_json, embedding)
                    VALUES (?, ?, ?, ?)
                    """,
                    [
                        (
                            record.id,
                            record.content,
                            json.dumps(record.metadata, sort_keys=True),
                            [float(v) for v in record.embedding],
                        )
                        for record in records
                    ],
                )
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise
            self._conn.execute("COMMIT")

    def select_by_id(self, doc_id: str) -> DocumentRecord | None:
        with self._lock:
            return self._select_by_id(doc_id)

    def update_row(
        self,
        doc_id: str,
        *,
        content: str | None = None,
        metadata: dict[str, Any] | None = None,
        embedding: list[float] | None = None,
    ) -> DocumentRecord | None:
        sets: list[str] = []
        params: list[Any] = []
        if content is not None:
            sets.append("content = ?")
            params.append(content)
        if metadata is not None:
            sets.append("metadata_json = ?")
            params.append(json.dumps(metadata, sort_keys=True))
        if embedding is not None:
            sets.append("embedding = ?")
            params.append([float(v) for v in embedding])
        sets.append("updated_at = now()")
        params.append(doc_id)

        with self._lock:
            if self._select_by_id(doc_id) is None:
                return None
            self._conn.execute(
                f"UPDATE documents SET {', '.join(sets)} WHERE id = ?",
                params,
            )
            return self._select_by_id(doc_id)

    def delete_row(self, doc_id: str) -> bool:
        with self._lock:
            if not self._existing_ids([doc_id]):
                return False
            self._conn.execute("DELETE FROM documents WHERE id = ?", [doc_id])
            return True

    def delete_where(self, filters: Sequence[MetadataFilter]) -> int:
        with self._lock:
            rows = self._conn.execute(
                "SELECT id, metadata_json FROM documents ORDER BY seq"
            ).fetchall()
            doomed = [
                str(row[0]) for row in rows if matches_all(json.loads(str(row[1])), filters)
            ]
            if not doomed:
                return 0
            self._conn.execute("BEGIN TRANSACTION")
            try:
                for chunk in _chunks(doomed):
                    placeholders = ", ".join(["?"] * len(chunk))
                    self._conn.execute(
                        f"DELETE FROM documents WHERE id IN ({placeholders})",
                        list(chunk),
                    )
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise
            self._conn.execute("COMMIT")
            return len(doomed)

    def vector_top_k(
        self,
        query_vector: Sequence[float],
        k: int,
        filters: Sequence[MetadataFilter] = (),
        min_similarity: float | None = None,
    ) -> list[ScoredRecord]:
        with self._lock:
            rows = self._conn.execute(
                f"SELECT {_COLUMNS} FROM documents ORDER BY seq"
            ).fetchall()
        candidates = [
            record
            for record in (self._row_to_record(row) for row in rows)
            if matches_all(record.metadata, filters)
        ]
        if not candidates:
            return []
        matrix = np.asarray([record.embedding for record in candidates], dtype=np.float64)
        scores = similarities(self.metric, query_vector, matrix)  # type: ignore[arg-type]
        scored = [
            ScoredRecord(record=record, score=float(score))
            for record, score in zip(candidates, scores)
            if min_similarity is None or score >= min_similarity
        ]
        return rank_scored(scored, k)

    def text_top_k(
        self,
        query_text: str,
        k: int,
        filters: Sequence[MetadataFilter] = (),
    ) -> list[ScoredRecord]:
        terms = query_terms(query_text)
        if not terms:
            return []

        score_expr = " + ".join(
            ["CASE WHEN contains(lower(content), ?) THEN 1 ELSE 0 END"] * len(terms)
        )
        sql = f"""
            SELECT * FROM (
                SELECT
                    {_COLUMNS},
                    CAST(({score_expr}) AS DOUBLE) / ? AS score
                FROM documents
            ) ranked
            WHERE score > 0
            ORDER BY score DESC, seq ASC
        """
        params: list[Any] = []
        params.extend(terms)
        params.append(len(terms))
        if not filters:
            sql += "\nLIMIT ?"
            params.append(k)

        with self._lock:
            rows = self._conn.execute(sql, params).fetchall()

        scored: list[ScoredRecord] = []
        for row in rows:
            record = self._row_to_record(row)
            if not matches_all(record.metadata, filters):
                continue
            scored.append(ScoredRecord(record=record, score=float(row[7])))
            if len(scored) >= k:
                break
        return scored

    def count(self) -> int:
        with self._lock:
            row = self._conn.execute("SELECT COUNT(*) FROM documents").fetchone()
        return int(row[0]) if row else 0

    def truncate(self) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM documents")

    def _select_by_id(self, doc_id: str) -> DocumentRecord | None:
        row = self._conn.execute(
            f"SELECT {_COLUMNS} FROM documents WHERE id = ? LIMIT 1",
            [doc_id],
        ).fetchone()
        if row is None:
            return None
        return self._row_to_record(row)

    def _existing_ids(self, ids: Sequence[str]) -> list[str]:
        found: list[str] = []
        for chunk in _chunks(ids):
            placeholders = ", ".join(["?"] * len(chunk))
            rows = self._conn.execute(
                f"SELECT id FROM documents WHERE id IN ({placeholders})",
                list(chunk),
            ).fetchall()
            found.extend(str(row[0]) for row in rows)
        return found

    @staticmethod
    def _row_to_record(row: tuple[Any, ...]) -> DocumentRecord:
        return DocumentRecord(
            id=str(row[0]),
            seq=int(row[1]),
            content=str(row[2]),
            metadata=json.loads(str(row[3])),
            embedding=[float(v) for v in row[4]],
            created_at=str(row[5]) if row[5] is not None else None,
            updated_at=str(row[6]) if row[6] is not None else None,
        )
