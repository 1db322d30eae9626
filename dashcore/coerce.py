from __future__ import annotations

import json
import math
import numbers
import re
from datetime import date, datetime
from typing import Any, List, Union

import pandas as pd


Number = Union[int, float]

_NUMERIC_RE = re.compile(r"^\s*[-+]?(\d+(\.\d*)?|\.\d+)([eE][-+]?\d+)?\s*$")


def is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (list, tuple, dict, set)):
        return False
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def is_numeric_string(value: Any) -> bool:
    return isinstance(value, str) and bool(_NUMERIC_RE.match(value))


def _finite(value: float) -> Number:
    if math.isnan(value) or math.isinf(value):
        return 0
    if value.is_integer() and abs(value) < 2**53:
        return int(value)
    return value


def as_number(value: Any) -> Number:
    """``Number(x) || 0``: always a finite int/float, never raises."""

    if is_missing(value):
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, numbers.Integral):
        return int(value)
    if isinstance(value, numbers.Real):
        return _finite(float(value))
    if is_numeric_string(value):
        return _finite(float(value))
    return 0


def ensure_list(value: Any) -> List[Any]:
    """Lists pass through; JSON-encoded lists are decoded; anything else becomes []."""

    if isinstance(value, list):
        return value
    if isinstance(value, tuple):
        return list(value)
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except ValueError:
            return []
        return parsed if isinstance(parsed, list) else []
    return []


def ensure_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def safe_str(value: Any, fallback: str = "") -> str:
    if is_missing(value):
        return fallback
    if isinstance(value, str):
        return value
    try:
        return str(value)
    except Exception:
        return fallback


def safe_str_lower(value: Any, fallback: str = "") -> str:
    return safe_str(value, fallback).lower()


def round_decimal(value: Any, decimals: int = 2) -> Number:
    return round(as_number(value), decimals)


def format_decimal(value: Any, decimals: int = 2) -> str:
    return f"{as_number(value):.{decimals}f}"


def safe_format_date(value: Any, fmt: str = "short", fallback: str = "") -> str:
    if is_missing(value) or value == "":
        return fallback
    try:
        if isinstance(value, (datetime, date)):
            ts = pd.Timestamp(value)
        elif isinstance(value, numbers.Real) and not isinstance(value, bool):
            ts = pd.Timestamp(value, unit="ms")
        else:
            ts = pd.Timestamp(str(value))
    except (TypeError, ValueError, OverflowError):
        return fallback
    if pd.isna(ts):
        return fallback
    if fmt == "iso":
        return ts.strftime("%Y-%m-%d")
    if fmt == "long":
        return ts.strftime("%B %d, %Y").replace(" 0", " ")
    return ts.strftime("%m/%d/%Y")
