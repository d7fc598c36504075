"""
Embedding cache collaborator.

The store consults an ``EmbeddingCache`` before calling the provider and
fills it afterwards. A store without a cache behaves identically, only slower.
"""

from __future__ import annotations

import hashlib
import threading
import time
from collections import OrderedDict
from typing import Callable, Protocol

from .models import Vector


class EmbeddingCache(Protocol):
    """Key/value cache of embedding vectors."""

    def get(self, key: str) -> Vector | None:
        """Return the cached vector, or None on a miss or expiry."""

    def set(self, key: str, vector: Vector) -> None:
        """Store *vector* under *key*."""

    def evict(self, key: str) -> None:
        """Drop *key* if present."""


def embedding_cache_key(namespace: str, text: str) -> str:
    """Stable key for *text* embedded by the provider identified by *namespace*."""
    digest = hashlib.sha256(f"{namespace}\x00{text}".encode("utf-8")).hexdigest()
    return f"embedding:{digest}"


class TTLEmbeddingCache:
    """In-process cache whose entries expire ``ttl_seconds`` after being set.

    When ``max_entries`` is exceeded the oldest entries are dropped first.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float = 3600.0,
        max_entries: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if max_entries < 1:
            raise ValueError("max_entries must be positive")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, Vector]] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Vector | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            expires_at, vector = entry
            if expires_at <= self._clock():
                del self._entries[key]
                self.misses += 1
                return None
            self.hits += 1
            return list(vector)

    def set(self, key: str, vector: Vector) -> None:
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = (self._clock() + self.ttl_seconds, list(vector))
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def evict(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
