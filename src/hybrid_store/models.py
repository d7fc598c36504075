"""
Document, search result and request models.

Stored records and results are frozen dataclasses; caller payloads are
pydantic models so malformed input is rejected before any external call.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, TypeAlias, Union, cast

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError

MetadataScalar: TypeAlias = Union[str, int, float, bool, None]
MetadataValue: TypeAlias = Union[
    MetadataScalar, list["MetadataValue"], dict[str, "MetadataValue"]
]
Metadata: TypeAlias = dict[str, MetadataValue]
Vector: TypeAlias = list[float]


def validate_metadata_value(value: Any, path: str = "metadata") -> MetadataValue:
    """Return *value* as a closed metadata variant or raise ``ValidationError``."""
    if value is None or isinstance(value, (str, bool, int)):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValidationError(f"Non-finite number at {path}.")
        return value
    if isinstance(value, (list, tuple)):
        return [
            validate_metadata_value(item, f"{path}[{i}]") for i, item in enumerate(value)
        ]
    if isinstance(value, Mapping):
        result: dict[str, MetadataValue] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise ValidationError(f"Metadata keys must be strings at {path}: {key!r}")
            result[key] = validate_metadata_value(item, f"{path}.{key}")
        return result
    raise ValidationError(
        f"Unsupported metadata type {type(value).__name__} at {path}."
    )


def validate_metadata(metadata: Mapping[str, Any] | None) -> Metadata:
    if metadata is None:
        return {}
    if not isinstance(metadata, Mapping):
        raise ValidationError("Metadata must be a mapping of string keys.")
    return cast(Metadata, validate_metadata_value(metadata))


def validate_vector(values: Any, *, name: str = "embedding") -> Vector:
    """Coerce a sequence of numbers to a list of finite floats."""
    if isinstance(values, (str, bytes)) or not hasattr(values, "__iter__"):
        raise ValidationError(f"{name} must be a sequence of numbers.")
    vector: Vector = []
    for item in values:
        if isinstance(item, (bool, str, bytes)):
            raise ValidationError(f"{name} contains a non-numeric value: {item!r}")
        try:
            number = float(item)
        except (TypeError, ValueError):
            raise ValidationError(f"{name} contains a non-numeric value: {item!r}")
        if not math.isfinite(number):
            raise ValidationError(f"{name} contains a non-finite value.")
        vector.append(number)
    return vector


@dataclass(frozen=True)
class Document:
    """A stored document."""

    id: str
    content: str
    metadata: Metadata
    embedding: Vector
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class SearchResult:
    """A ranked hit. Optional fields are populated per the caller's include flags."""

    id: str
    content: str | None = None
    metadata: Metadata | None = None
    embedding: Vector | None = None
    similarity: float | None = None
    text_rank: float | None = None
    vector_rank: float | None = None
    fused_score: float | None = None


@dataclass(frozen=True)
class StoreStats:
    total_documents: int
    dimensions: int
    distance_metric: str
    backend: str


class _Payload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    @classmethod
    def parse(cls, value: Any):
        """Validate *value* (model, mapping or None) and raise ``ValidationError``."""
        if isinstance(value, cls):
            return value
        try:
            return cls.model_validate(value if value is not None else {})
        except PydanticValidationError as exc:
            raise ValidationError(_describe(exc)) from exc


def _describe(exc: PydanticValidationError) -> str:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "<root>"
        problems.append(f"{location}: {error.get('msg', 'invalid')}")
    return "; ".join(problems)


class DocumentInput(_Payload):
    """A document to insert. ``embedding`` is generated when omitted."""

    content: str = Field(description="Document text")
    metadata: dict[str, Any] | None = Field(default=None)
    embedding: list[float] | None = Field(default=None)
    id: str | None = Field(default=None, description="Auto-generated when omitted")

    @field_validator("content")
    @classmethod
    def _content_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("content must not be empty")
        return value

    @field_validator("id")
    @classmethod
    def _id_not_blank(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            raise ValueError("id must not be empty")
        return value


class DocumentUpdate(_Payload):
    """Partial update. A new ``content`` without ``embedding`` triggers re-embedding."""

    content: str | None = None
    metadata: dict[str, Any] | None = None
    embedding: list[float] | None = None

    @field_validator("content")
    @classmethod
    def _content_not_blank(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            raise ValueError("content must not be empty")
        return value

    def is_empty(self) -> bool:
        return self.content is None and self.metadata is None and self.embedding is None


class SearchOptions(_Payload):
    """Options for vector-only search."""

    limit: int = Field(default=10, ge=1)
    threshold: float | None = Field(default=None, allow_inf_nan=False)
    filter: Any = Field(default=None, description="Metadata filter (mapping, string or list)")
    include_content: bool = True
    include_metadata: bool = True
    include_embedding: bool = False


class HybridSearchOptions(_Payload):
    """Options for hybrid (lexical + vector) search."""

    limit: int = Field(default=10, ge=1)
    text_weight: float = Field(default=0.5, ge=0.0, allow_inf_nan=False)
    vector_weight: float = Field(default=0.5, ge=0.0, allow_inf_nan=False)
    filter: Any = Field(default=None, description="Metadata filter (mapping, string or list)")
    include_content: bool = True
    include_metadata: bool = True
    include_embedding: bool = False
    degrade_on_partial_failure: bool = False
