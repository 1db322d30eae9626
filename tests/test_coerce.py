from __future__ import annotations

from datetime import datetime

import pytest

from dashcore.coerce import (
    as_number,
    ensure_list,
    format_decimal,
    round_decimal,
    safe_format_date,
    safe_str,
    safe_str_lower,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        (None, 0),
        ("", 0),
        ("abc", 0),
        ("12", 12),
        (" 3.25 ", 3.25),
        (float("nan"), 0),
        (float("inf"), 0),
        (7.0, 7),
        (True, 1),
        ([1], 0),
    ],
)
def test_as_number(raw, expected):
    assert as_number(raw) == expected


def test_ensure_list():
    assert ensure_list([1]) == [1]
    assert ensure_list((1, 2)) == [1, 2]
    assert ensure_list('["a", "b"]') == ["a", "b"]
    assert ensure_list('{"a": 1}') == []
    assert ensure_list(None) == []


def test_string_helpers():
    assert safe_str(None, "-") == "-"
    assert safe_str(12) == "12"
    assert safe_str_lower("BaR") == "bar"
    assert safe_str_lower(None) == ""


def test_decimal_helpers():
    assert round_decimal("2.345", 1) == 2.3
    assert format_decimal("bad") == "0.00"
    assert format_decimal(3.14159, 3) == "3.142"


def test_safe_format_date():
    assert safe_format_date("2024-05-01T10:00:00") == "05/01/2024"
    assert safe_format_date(datetime(2024, 5, 1), "long") == "May 1, 2024"
    assert safe_format_date("2024-05-01", "iso") == "2024-05-01"
    assert safe_format_date("not a date", fallback="n/a") == "n/a"
    assert safe_format_date(None) == ""
