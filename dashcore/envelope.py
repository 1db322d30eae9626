"""Envelope normalization.

Upstream services answer in two competing conventions (``success``/``Success``, ``data``/``Data``...).
Normalization is a two-stage transform::

    unknown --read_envelope--> Envelope --to_record--> Ok | Failed
              (or Malformed)

``normalize`` collapses the tagged result into a plain record and never raises.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from dashcore.coerce import as_number, is_missing, is_numeric_string


logger = logging.getLogger(__name__)

NormalizedRecord = Dict[str, Any]

# canonical field -> accepted spellings, preferred first
ENVELOPE_FIELDS: Dict[str, Tuple[str, ...]] = {
    "success": ("success", "Success", "isSuccess", "IsSuccess"),
    "data": ("data", "Data"),
    "errors": ("errors", "Errors"),
    "message": ("message", "Message"),
    "status_code": ("statusCode", "StatusCode"),
    "timestamp": ("timestamp", "Timestamp"),
    "trace_id": ("traceId", "TraceId"),
}
ENVELOPE_KEYS = frozenset(alias for aliases in ENVELOPE_FIELDS.values() for alias in aliases)
ERROR_FIELDS: Tuple[str, ...] = ("errors", "Errors", "message", "Message")
FAILURE_FALLBACK_MESSAGE = "Request failed"
MAX_UNWRAP_DEPTH = 16

# defaults used when a payload field arrives as null
LIST_FIELDS = frozenset(
    {
        "activities",
        "charts",
        "datasets",
        "errors",
        "items",
        "labels",
        "recentActivities",
        "revenueByTenant",
        "rows",
        "schools",
        "series",
        "tenants",
        "topPerformingTenants",
    }
)
MAPPING_FIELDS = frozenset({"globalStats", "stats", "summary"})
_NUMERIC_KEY_RE = re.compile(r"^(total|count|average|avg|num)[A-Z]|(Count|Amount|Rate|Percentage|Revenue|Total)$")

FieldTypes = Mapping[str, Callable[[], Any]]


def camel_key(key: Any) -> Any:
    """``TotalStudents`` -> ``totalStudents``; ``URLPath`` -> ``urlPath``; non-strings pass through."""

    if not isinstance(key, str) or not key or not key[0].isupper():
        return key
    if key.isupper():
        return key.lower()
    run = 0
    while run < len(key) and key[run].isupper():
        run += 1
    if run == 1:
        return key[0].lower() + key[1:]
    return key[: run - 1].lower() + key[run - 1 :]


def pascal_key(key: str) -> str:
    return key[:1].upper() + key[1:]


def aliases_for(field_name: str) -> Tuple[str, ...]:
    if field_name in ENVELOPE_FIELDS:
        return ENVELOPE_FIELDS[field_name]
    camel = camel_key(field_name)
    pascal = pascal_key(camel)
    return (camel,) if camel == pascal else (camel, pascal)


def lookup(mapping: Any, field_name: str, default: Any = None, *, aliases: Optional[Iterable[str]] = None) -> Any:
    """Dual-casing field access: the first spelling with a non-null value wins."""

    if not isinstance(mapping, Mapping):
        return default
    for alias in aliases or aliases_for(field_name):
        value = mapping.get(alias)
        if not is_missing(value):
            return value
    return default


def has_any(mapping: Mapping, field_name: str) -> bool:
    return any(alias in mapping for alias in aliases_for(field_name))


def default_for(key: str, field_types: Optional[FieldTypes] = None) -> Any:
    """Type-appropriate default for a null field, or ``None`` when its type is unknown."""

    if field_types and key in field_types:
        return field_types[key]()
    if key in LIST_FIELDS:
        return []
    if key in MAPPING_FIELDS:
        return {}
    if _NUMERIC_KEY_RE.search(key):
        return 0
    return None


def collapse_keys(mapping: Mapping, field_types: Optional[FieldTypes] = None) -> NormalizedRecord:
    """Collapse key casing one level deep, coerce numeric strings and replace nulls."""

    out: NormalizedRecord = {}
    for key, value in mapping.items():
        canonical = camel_key(key)
        if canonical in out and canonical == key and is_missing(value):
            continue
        if canonical in out and canonical != key and not is_missing(mapping.get(canonical)):
            # both spellings present: the lowerCamel one keeps priority
            continue
        if is_missing(value):
            default = default_for(canonical, field_types)
            if default is None:
                out.pop(canonical, None)
                continue
            value = default
        elif is_numeric_string(value):
            value = as_number(value)
        out[canonical] = value
    return out


@dataclass(frozen=True)
class Envelope:
    success: Optional[bool]
    data: Any
    errors: List[str] = field(default_factory=list)
    extras: Dict[str, Any] = field(default_factory=dict)
    wrapped: bool = True


@dataclass(frozen=True)
class Ok:
    record: NormalizedRecord


@dataclass(frozen=True)
class Failed:
    errors: List[str]

    @property
    def record(self) -> NormalizedRecord:
        return {"errors": list(self.errors)}


@dataclass(frozen=True)
class Malformed:
    reason: str
    synthetic: bool = False

    @property
    def record(self) -> NormalizedRecord:
        return {"errors": [self.reason]} if self.synthetic else {}


NormalizeResult = Union[Ok, Failed, Malformed]


def _error_texts(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, Mapping):
        message = lookup(value, "message")
        return [message] if isinstance(message, str) and message.strip() else []
    if isinstance(value, (list, tuple)):
        out: List[str] = []
        for item in value:
            out.extend(_error_texts(item))
        return out
    return []


def collect_errors(mapping: Mapping) -> List[str]:
    """Messages from errors/Errors/message/Message, in that order, deduplicated."""

    out: List[str] = []
    for key in ERROR_FIELDS:
        for text in _error_texts(mapping.get(key)):
            if text not in out:
                out.append(text)
    return out


def is_envelope(mapping: Any, *, strict: bool = False) -> bool:
    """Whether a mapping is a success/data wrapper rather than an application payload.

    At the top level a ``data``/``Data`` object or list marks a wrapper even next to other keys
    (``{"data": {...}, "totalCount": 3}``). Nested values are only unwrapped when ``strict`` holds:
    every key belongs to the envelope vocabulary.
    """

    if not isinstance(mapping, Mapping):
        return False
    if not strict and _declares_failure(mapping):
        return True
    has_success = isinstance(lookup(mapping, "success"), bool)
    has_data = has_any(mapping, "data")
    vocab_only = all(key in ENVELOPE_KEYS for key in mapping)
    if strict:
        return (has_success or has_data) and vocab_only
    wraps_data = isinstance(lookup(mapping, "data"), (Mapping, list, tuple))
    return (has_success and (has_data or vocab_only)) or (has_data and (vocab_only or wraps_data))


def _declares_failure(mapping: Mapping) -> bool:
    return any(mapping.get(alias) is False for alias in ENVELOPE_FIELDS["success"])


def read_envelope(raw: Any) -> Union[Envelope, Malformed]:
    if raw is None:
        return Malformed("empty payload")
    if isinstance(raw, (list, tuple)):
        return Malformed("top-level array is not an envelope")
    if not isinstance(raw, Mapping):
        return Malformed(f"unexpected payload type {type(raw).__name__}")
    if not is_envelope(raw):
        return Envelope(success=None, data=raw, wrapped=False)

    extras = {key: value for key, value in raw.items() if key not in ENVELOPE_KEYS}
    success = False if _declares_failure(raw) else lookup(raw, "success")
    return Envelope(
        success=success if isinstance(success, bool) else None,
        data=lookup(raw, "data"),
        errors=collect_errors(raw),
        extras=extras,
    )


def unwrap(envelope: Envelope) -> Envelope:
    """Peel nested wrappers (``{data: {success, data}}``) until the payload is application data."""

    current = envelope
    for _ in range(MAX_UNWRAP_DEPTH):
        if current.success is False or not is_envelope(current.data, strict=True):
            return current
        inner = read_envelope(current.data)
        if isinstance(inner, Malformed):
            return current
        current = Envelope(
            success=False if inner.success is False else current.success,
            data=inner.data,
            errors=inner.errors or current.errors,
            extras=current.extras,
        )
    return current


def to_record(envelope: Envelope, field_types: Optional[FieldTypes] = None) -> Union[Ok, Failed]:
    if envelope.success is False:
        return Failed(envelope.errors or [FAILURE_FALLBACK_MESSAGE])

    data = envelope.data
    if isinstance(data, Mapping):
        record = collapse_keys(data, field_types)
    elif isinstance(data, (list, tuple)):
        record = {"items": list(data)}
    elif is_missing(data):
        record = {}
    else:
        record = {"value": as_number(data) if is_numeric_string(data) else data}

    for key, value in collapse_keys(envelope.extras, field_types).items():
        record.setdefault(key, value)
    return Ok(record)


def normalize_result(raw: Any, field_types: Optional[FieldTypes] = None) -> NormalizeResult:
    try:
        envelope = read_envelope(raw)
        if isinstance(envelope, Malformed):
            return envelope
        return to_record(unwrap(envelope), field_types)
    except Exception as exc:
        logger.debug("normalize failed on %s: %s", type(raw).__name__, exc)
        return Malformed(f"Malformed envelope: {exc}", synthetic=True)


def normalize(raw: Any, field_types: Optional[FieldTypes] = None) -> NormalizedRecord:
    """Any JSON-like value -> canonical record. Total: never raises."""

    return normalize_result(raw, field_types).record
