"""
Helpers that run external calls with deadlines and wrap their failures.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Sequence
from typing import Any, Callable, TypeVar

from .errors import EmbeddingError, HybridStoreError, OperationTimeoutError, StorageError
from .logs import get_logger

logger = get_logger("runtime")

T = TypeVar("T")


async def run_storage(
    operation: str,
    fn: Callable[..., T],
    *args: Any,
    timeout: float | None,
    document_ids: Sequence[str] = (),
    **kwargs: Any,
) -> T:
    """Run a blocking backend call on a worker thread."""
    try:
        return await asyncio.wait_for(asyncio.to_thread(fn, *args, **kwargs), timeout)
    except HybridStoreError:
        raise
    except asyncio.TimeoutError as exc:
        logger.warning("Storage call timed out", operation=operation, timeout=timeout)
        raise OperationTimeoutError(
            f"Storage call exceeded {timeout}s deadline.",
            operation=operation,
            document_ids=document_ids,
        ) from exc
    except Exception as exc:
        logger.error(
            "Storage call failed",
            operation=operation,
            document_ids=list(document_ids),
            error=str(exc),
        )
        raise StorageError(
            f"Storage backend failed: {exc}",
            operation=operation,
            document_ids=document_ids,
        ) from exc


async def run_provider(
    operation: str,
    call: Awaitable[T],
    *,
    timeout: float | None,
    document_ids: Sequence[str] = (),
) -> T:
    """Await an embedding provider call under a deadline."""
    try:
        return await asyncio.wait_for(call, timeout)
    except EmbeddingError as exc:
        if exc.operation is None or exc.operation == "embed":
            exc.operation = operation
        if not exc.document_ids:
            exc.document_ids = tuple(document_ids)
        raise
    except HybridStoreError:
        raise
    except asyncio.TimeoutError as exc:
        logger.warning("Embedding call timed out", operation=operation, timeout=timeout)
        raise OperationTimeoutError(
            f"Embedding provider exceeded {timeout}s deadline.",
            operation=operation,
            document_ids=document_ids,
        ) from exc
    except Exception as exc:
        logger.error("Embedding call failed", operation=operation, error=str(exc))
        raise EmbeddingError(
            f"Embedding provider failed: {exc}",
            operation=operation,
            document_ids=document_ids,
        ) from exc
