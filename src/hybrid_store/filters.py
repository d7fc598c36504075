"""
Metadata filter parsing and evaluation.

Filters are conjunctions of ``MetadataFilter`` conditions. They can be built
from a containment mapping (``{"category": "pets", "tags": ["a"]}``), an
operator mapping (``{"year": {"$gte": 2020}}``), or the compact string syntax
(``category=pets and year>=2020``).
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Literal, cast

from .errors import FilterError, ValidationError
from .models import MetadataValue, validate_metadata_value


FilterOperator = Literal["eq", "ne", "gt", "gte", "lt", "lte", "in", "contains"]

_MISSING = object()


@dataclass(frozen=True)
class MetadataFilter:
    """Normalized metadata filter condition over a (possibly nested) key path."""

    path: tuple[str, ...]
    operator: FilterOperator
    value: MetadataValue

    def __post_init__(self) -> None:
        if not self.path or any(not isinstance(part, str) or not part for part in self.path):
            raise FilterError(f"Invalid filter field path: {self.path!r}")
        if self.operator not in _OPERATORS:
            raise FilterError(f"Unsupported metadata operator: {self.operator!r}")
        try:
            normalized = validate_metadata_value(self.value, path=self.field)
        except ValidationError as exc:
            raise FilterError(f"Invalid filter value: {exc.message}") from exc
        object.__setattr__(self, "value", normalized)
        if self.operator in {"gt", "gte", "lt", "lte"} and not _is_number(self.value):
            raise FilterError(
                f"Metadata operator {self.operator!r} requires numeric value for field {self.field!r}."
            )
        if self.operator == "in" and (not isinstance(self.value, list) or not self.value):
            raise FilterError(f"Metadata `in` filter for field {self.field!r} has no values.")

    @classmethod
    def on(cls, field: str, operator: FilterOperator, value: Any) -> MetadataFilter:
        """Build a filter from a dotted field name (``author.name``)."""
        return cls(path=tuple(field.split(".")), operator=operator, value=value)

    @property
    def field(self) -> str:
        return ".".join(self.path)

    def to_dict(self) -> dict[str, Any]:
        return {
            "field": self.field,
            "operator": self.operator,
            "value": self.value,
        }

    def matches(self, metadata: Mapping[str, Any]) -> bool:
        stored = _resolve(metadata, self.path)
        if stored is _MISSING:
            return self.operator == "ne"

        if self.operator == "eq":
            return _equal(stored, self.value)
        if self.operator == "ne":
            return not _equal(stored, self.value)
        if self.operator == "in":
            return any(_equal(stored, item) for item in cast(list, self.value))
        if self.operator == "contains":
            return _contains(stored, self.value)

        if not _is_number(stored):
            return False
        if self.operator == "gt":
            return stored > self.value
        if self.operator == "gte":
            return stored >= self.value
        if self.operator == "lt":
            return stored < self.value
        return stored <= self.value


_OPERATORS: frozenset[str] = frozenset(
    {"eq", "ne", "gt", "gte", "lt", "lte", "in", "contains"}
)

_MAPPING_OPERATORS: dict[str, FilterOperator] = {
    "$eq": "eq",
    "$ne": "ne",
    "$gt": "gt",
    "$gte": "gte",
    "$lt": "lt",
    "$lte": "lte",
    "$in": "in",
    "$contains": "contains",
}


def matches_all(metadata: Mapping[str, Any], filters: Sequence[MetadataFilter]) -> bool:
    """Return True when *metadata* satisfies every condition."""
    return all(flt.matches(metadata) for flt in filters)


def build_filters(spec: Any) -> list[MetadataFilter]:
    """Normalize any accepted filter form into a list of conditions."""
    if spec is None:
        return []
    if isinstance(spec, MetadataFilter):
        return [spec]
    if isinstance(spec, str):
        return parse_metadata_filters(spec)
    if isinstance(spec, Mapping):
        return _from_mapping(spec)
    if isinstance(spec, Sequence):
        if not all(isinstance(item, MetadataFilter) for item in spec):
            raise FilterError("A filter list must contain only MetadataFilter conditions.")
        return list(spec)
    raise FilterError(f"Unsupported filter type: {type(spec).__name__}")


def _from_mapping(spec: Mapping[str, Any]) -> list[MetadataFilter]:
    parsed: list[MetadataFilter] = []
    for key, value in spec.items():
        if not isinstance(key, str) or not key:
            raise FilterError(f"Invalid filter key: {key!r}")

        if key == "$and":
            if not isinstance(value, Sequence) or isinstance(value, str):
                raise FilterError("`$and` expects a list of filter mappings.")
            for clause in value:
                if not isinstance(clause, Mapping):
                    raise FilterError("`$and` expects a list of filter mappings.")
                parsed.extend(_from_mapping(clause))
            continue
        if key.startswith("$"):
            raise FilterError(f"Unsupported top-level filter operator: {key!r}")

        if isinstance(value, Mapping) and value and all(
            isinstance(op, str) and op.startswith("$") for op in value
        ):
            for op, operand in value.items():
                operator = _MAPPING_OPERATORS.get(op)
                if operator is None:
                    raise FilterError(f"Unsupported metadata operator {op!r} for field {key!r}")
                parsed.append(MetadataFilter(path=(key,), operator=operator, value=operand))
        elif isinstance(value, (Mapping, list, tuple)):
            parsed.append(MetadataFilter(path=(key,), operator="contains", value=value))
        else:
            parsed.append(MetadataFilter(path=(key,), operator="eq", value=value))
    return parsed


def _resolve(metadata: Mapping[str, Any], path: tuple[str, ...]) -> Any:
    current: Any = metadata
    for part in path:
        if not isinstance(current, Mapping) or part not in current:
            return _MISSING
        current = current[part]
    return current


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _equal(stored: Any, expected: Any) -> bool:
    # bool is an int subclass; True must not equal 1.
    if isinstance(stored, bool) or isinstance(expected, bool):
        return isinstance(stored, bool) and isinstance(expected, bool) and stored is expected
    if _is_number(stored) and _is_number(expected):
        return stored == expected
    if isinstance(stored, list) and isinstance(expected, list):
        return len(stored) == len(expected) and all(
            _equal(a, b) for a, b in zip(stored, expected)
        )
    if isinstance(stored, Mapping) and isinstance(expected, Mapping):
        return stored.keys() == expected.keys() and all(
            _equal(stored[k], expected[k]) for k in stored
        )
    if stored is None or expected is None:
        return stored is None and expected is None
    return type(stored) is type(expected) and stored == expected


def _contains(stored: Any, expected: Any) -> bool:
    if isinstance(stored, str):
        return isinstance(expected, str) and expected.lower() in stored.lower()
    if isinstance(stored, list):
        needles = expected if isinstance(expected, list) else [expected]
        return all(_list_has(stored, needle) for needle in needles)
    if isinstance(stored, Mapping):
        if not isinstance(expected, Mapping):
            return False
        for key, sub in expected.items():
            if key not in stored:
                return False
            if isinstance(sub, (Mapping, list)):
                if not _contains(stored[key], sub):
                    return False
            elif not _equal(stored[key], sub):
                return False
        return True
    return _equal(stored, expected)


def _list_has(stored: list[Any], needle: Any) -> bool:
    for item in stored:
        if isinstance(needle, Mapping) and isinstance(item, Mapping):
            if _contains(item, needle):
                return True
        elif _equal(item, needle):
            return True
    return False


# ---------------------------------------------------------------------------
# String syntax
# ---------------------------------------------------------------------------

_FIELD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*$")
_NUMBER_RE = re.compile(r"^-?\d+(?:\.\d+)?$")
_FIELD_PATTERN = r"[A-Za-z_][A-Za-z0-9_.]*"


def supported_filter_syntax() -> str:
    """Return a short help text for filter syntax."""
    return (
        "Supported filter syntax: "
        "`field=value`, `field!=value`, `field>=number`, `field<=number`, "
        "`field>number`, `field<number`, `field in (a, b, c)`, `field~substring`; "
        "combine with comma or `and`; use dots for nested keys (`author.name=ada`)."
    )


def parse_metadata_filters(
    raw_filters: str | None,
    *,
    allowed_fields: set[str] | None = None,
) -> list[MetadataFilter]:
    """Parse a raw filter string into normalized metadata conditions."""
    if raw_filters is None or not raw_filters.strip():
        return []

    conditions = _split_conditions(raw_filters)
    parsed: list[MetadataFilter] = []
    for condition in conditions:
        parsed.append(_parse_condition(condition, allowed_fields=allowed_fields))
    return parsed


def _parse_condition(condition: str, *, allowed_fields: set[str] | None) -> MetadataFilter:
    text = condition.strip()
    if not text:
        raise FilterError("Empty filter condition.")

    in_match = re.match(
        rf"^\s*({_FIELD_PATTERN})\s+in\s+(.+)\s*$", text, flags=re.IGNORECASE
    )
    if in_match:
        field = in_match.group(1)
        _validate_field(field, allowed_fields=allowed_fields)
        values = _parse_list_value(in_match.group(2))
        if not values:
            raise FilterError(f"`in` filter has no values: {text!r}")
        return MetadataFilter.on(field, "in", values)

    op_match = re.match(rf"^\s*({_FIELD_PATTERN})\s*(<=|>=|!=|=|<|>|~|:)\s*(.+)\s*$", text)
    if not op_match:
        raise FilterError(f"Invalid filter syntax: {text!r}")

    field = op_match.group(1)
    operator_symbol = op_match.group(2)
    raw_value = op_match.group(3)
    _validate_field(field, allowed_fields=allowed_fields)
    value = _parse_scalar_value(raw_value)

    operator_map: dict[str, FilterOperator] = {
        "=": "eq",
        ":": "eq",
        "!=": "ne",
        ">": "gt",
        ">=": "gte",
        "<": "lt",
        "<=": "lte",
        "~": "contains",
    }
    operator = operator_map[operator_symbol]

    if operator in {"gt", "gte", "lt", "lte"} and not _is_number(value):
        raise FilterError(f"Operator `{operator_symbol}` requires a numeric value: {text!r}")

    return MetadataFilter.on(field, operator, value)


def _validate_field(field: str, *, allowed_fields: set[str] | None) -> None:
    if not _FIELD_RE.match(field):
        raise FilterError(f"Invalid field name: {field!r}")
    if allowed_fields is not None and field not in allowed_fields:
        allowed = ", ".join(sorted(allowed_fields)) if allowed_fields else "<none>"
        raise FilterError(f"Unknown metadata field {field!r}. Allowed fields: {allowed}")


def _split_conditions(raw: str) -> list[str]:
    parts: list[str] = []
    current: list[str] = []
    quote: str | None = None
    depth = 0
    i = 0
    while i < len(raw):
        ch = raw[i]

        if quote is not None:
            current.append(ch)
            if ch == quote:
                quote = None
            i += 1
            continue

        if ch in {"'", '"'}:
            quote = ch
        elif ch in {"(", "["}:
            depth += 1
        elif ch in {")", "]"}:
            depth = max(depth - 1, 0)
        elif depth == 0 and ch == ",":
            _flush_part(parts, current)
            i += 1
            continue
        elif (
            depth == 0
            and raw[i : i + 3].lower() == "and"
            and (i == 0 or raw[i - 1].isspace())
            and (i + 3 == len(raw) or raw[i + 3].isspace())
        ):
            _flush_part(parts, current)
            i += 3
            continue

        current.append(ch)
        i += 1

    if quote is not None:
        raise FilterError(f"Unterminated quote in filter: {raw!r}")
    _flush_part(parts, current)
    return parts


def _flush_part(parts: list[str], current: list[str]) -> None:
    text = "".join(current).strip()
    if text:
        parts.append(text)
    current.clear()


def _parse_list_value(raw_value: str) -> list[str | bool | int | float]:
    text = raw_value.strip()
    if text.startswith("(") and text.endswith(")"):
        text = text[1:-1]
    elif text.startswith("[") and text.endswith("]"):
        text = text[1:-1]

    if not text.strip():
        return []

    items = _split_conditions(text)
    return [_parse_scalar_value(item) for item in items]


def _parse_scalar_value(raw_value: str) -> str | bool | int | float:
    text = raw_value.strip()
    if not text:
        raise FilterError("Missing filter value.")

    if len(text) >= 2 and (
        (text.startswith("'") and text.endswith("'"))
        or (text.startswith('"') and text.endswith('"'))
    ):
        return text[1:-1]

    lower = text.lower()
    if lower == "true":
        return True
    if lower == "false":
        return False
    if _NUMBER_RE.match(text):
        if "." in text:
            return float(text)
        return int(text)
    return text
