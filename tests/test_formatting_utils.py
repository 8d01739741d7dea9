from __future__ import annotations

import datetime as dt
import re

import pytest

from src.utils.ids import generate_id
from src.utils.money import format_amount, format_number, to_float, to_float_or_none
from src.utils.time import format_display_date, parse_date, parse_date_or_none


def test_generate_id_shape_and_uniqueness():
    ids = {generate_id() for _ in range(200)}
    assert len(ids) == 200
    for i in list(ids)[:5]:
        assert re.fullmatch(r"\d{13}[0-9a-z]{9}", i)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("2024-03-01", dt.date(2024, 3, 1)),
        ("2024-03-01T10:20:30Z", dt.date(2024, 3, 1)),
        ("03/01/2024", dt.date(2024, 3, 1)),
        ("3/1/24", dt.date(2024, 3, 1)),
        ("03-01-2024", dt.date(2024, 3, 1)),
    ],
)
def test_parse_date_formats(raw, expected):
    assert parse_date(raw) == expected


def test_parse_date_errors():
    with pytest.raises(ValueError, match="Missing date"):
        parse_date("  ")
    with pytest.raises(ValueError, match="Invalid date"):
        parse_date("31st of never")
    assert parse_date_or_none("garbage") is None


def test_format_display_date():
    assert format_display_date("2024-01-05") == "Jan 5, 2024"
    assert format_display_date(None) == ""
    assert format_display_date("soon") == "soon"


def test_lenient_numbers():
    assert to_float("1,234.5") == 1234.5
    assert to_float("abc") == 0.0
    assert to_float("NaN") == 0.0
    assert to_float_or_none("") is None
    assert to_float_or_none("7") == 7.0


def test_format_number_and_amount():
    assert format_number(1234.5) == "1,234.5"
    assert format_number(10) == "10"
    assert format_number(None) == "0"
    assert format_number(0.125, max_digits=2) == "0.13"
    assert format_amount(1500) == "₹1,500"
    assert format_amount(-20, symbol="$") == "-$20"
    assert format_amount(0, signed=True) == "+₹0"
    assert format_amount(-3.5, signed=True) == "-₹3.5"
