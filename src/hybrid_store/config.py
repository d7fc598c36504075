"""
Configuration helpers for hybrid stores.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Literal, cast, get_args

from .errors import ValidationError

if TYPE_CHECKING:
    from .embeddings import EmbeddingProvider


DistanceMetric = Literal["cosine", "l2", "inner_product"]
DISTANCE_METRICS: tuple[str, ...] = get_args(DistanceMetric)

DEFAULT_DB_PATH = "~/.hybrid_store/store.duckdb"
DEFAULT_TIMEOUT_SECONDS = 30.0

ENV_DB_PATH = "HYBRID_STORE_DB_PATH"
ENV_DIMENSIONS = "HYBRID_STORE_DIMENSIONS"
ENV_DISTANCE_METRIC = "HYBRID_STORE_DISTANCE_METRIC"
ENV_TIMEOUT = "HYBRID_STORE_TIMEOUT"
ENV_LOG_LEVEL = "HYBRID_STORE_LOG_LEVEL"
ENV_LOG_FORMAT = "HYBRID_STORE_LOG_FORMAT"


@dataclass(frozen=True)
class StoreConfig:
    """Per-store settings, fixed at construction."""

    dimensions: int
    distance_metric: DistanceMetric = "cosine"
    embedding_provider: EmbeddingProvider | None = None
    timeout: float | None = DEFAULT_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        if isinstance(self.dimensions, bool) or not isinstance(self.dimensions, int):
            raise ValidationError(f"dimensions must be an integer, got {self.dimensions!r}")
        if self.dimensions < 1:
            raise ValidationError(f"dimensions must be positive, got {self.dimensions}")
        if self.distance_metric not in DISTANCE_METRICS:
            raise ValidationError(
                f"Unsupported distance metric {self.distance_metric!r}. "
                f"Choose one of: {', '.join(DISTANCE_METRICS)}"
            )
        if self.timeout is not None and self.timeout <= 0:
            raise ValidationError(f"timeout must be positive, got {self.timeout}")
        if self.embedding_provider is not None:
            provider_dim = self.embedding_provider.get_dimensions()
            if provider_dim != self.dimensions:
                raise ValidationError(
                    f"Embedding provider produces {provider_dim}-dimensional vectors "
                    f"but the store is configured for {self.dimensions}."
                )

    @classmethod
    def create(
        cls,
        *,
        dimensions: int | None = None,
        distance_metric: str | None = None,
        embedding_provider: EmbeddingProvider | None = None,
        timeout: float | None = None,
    ) -> StoreConfig:
        """
        Build a config from explicit values, the environment, or defaults.

        ``dimensions`` falls back to ``HYBRID_STORE_DIMENSIONS`` and then to the
        embedding provider's dimensions.
        """
        resolved_dim = dimensions if dimensions is not None else _env_int(ENV_DIMENSIONS)
        if resolved_dim is None and embedding_provider is not None:
            resolved_dim = embedding_provider.get_dimensions()
        if resolved_dim is None:
            raise ValidationError(
                "dimensions not configured. Pass dimensions, set "
                f"{ENV_DIMENSIONS}, or provide an embedding provider."
            )
        metric = distance_metric or os.getenv(ENV_DISTANCE_METRIC) or "cosine"
        resolved_timeout = timeout if timeout is not None else _env_float(ENV_TIMEOUT)
        return cls(
            dimensions=resolved_dim,
            distance_metric=cast(DistanceMetric, metric.lower()),
            embedding_provider=embedding_provider,
            timeout=(
                resolved_timeout if resolved_timeout is not None else DEFAULT_TIMEOUT_SECONDS
            ),
        )


def resolve_db_path(override_path: str | None = None) -> str:
    """
    Resolve the DuckDB path from CLI override, env var, or default.

    Precedence:
    1) explicit override_path
    2) HYBRID_STORE_DB_PATH
    3) default path
    """
    raw_path = override_path or os.getenv(ENV_DB_PATH) or DEFAULT_DB_PATH
    resolved = Path(raw_path).expanduser().resolve()
    resolved.parent.mkdir(parents=True, exist_ok=True)
    return str(resolved)


def _env_int(name: str) -> int | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer, got {raw!r}")


def _env_float(name: str) -> float | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        return float(raw)
    except ValueError:
        raise ValidationError(f"{name} must be a number, got {raw!r}")
