"""
Error hierarchy for the hybrid store.

Every error carries the failing operation, the document ids involved, and
whether a caller may retry the whole operation.
"""

from __future__ import annotations

from collections.abc import Sequence


class HybridStoreError(Exception):
    """Base class for all store errors."""

    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        document_ids: Sequence[str] = (),
    ) -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.document_ids: tuple[str, ...] = tuple(document_ids)

    def __str__(self) -> str:
        parts = [self.message]
        if self.operation:
            parts.append(f"operation={self.operation}")
        if self.document_ids:
            shown = ", ".join(self.document_ids[:5])
            if len(self.document_ids) > 5:
                shown += f", ... ({len(self.document_ids)} total)"
            parts.append(f"ids=[{shown}]")
        return " | ".join(parts)


class ValidationError(HybridStoreError, ValueError):
    """Raised when caller input is rejected before any external call."""


class DuplicateDocumentError(ValidationError):
    """Raised when an insert targets ids that already exist."""


class DimensionMismatchError(HybridStoreError, ValueError):
    """Raised when a vector length differs from the store's dimensions."""

    def __init__(
        self,
        expected: int,
        actual: int,
        *,
        operation: str | None = None,
        document_ids: Sequence[str] = (),
    ) -> None:
        super().__init__(
            f"Expected embedding of length {expected}, got {actual}.",
            operation=operation,
            document_ids=document_ids,
        )
        self.expected = expected
        self.actual = actual


class FilterError(HybridStoreError, ValueError):
    """Raised when a metadata filter is malformed."""


class NotFoundError(HybridStoreError, LookupError):
    """Raised when an operation targets a missing document id."""


class EmbeddingError(HybridStoreError):
    """Raised when the embedding provider fails or returns malformed vectors."""

    retryable = True


class OperationTimeoutError(HybridStoreError, TimeoutError):
    """Raised when an external call exceeds its deadline."""

    retryable = True


class StorageError(HybridStoreError):
    """Raised when the storage backend fails."""

    retryable = True
