from __future__ import annotations

import datetime as dt

import pytest

from src.importers.csv_import import (
    CsvParseError,
    detect_column_mapping,
    import_holdings_from_csv,
    parse_csv,
    parse_csv_line,
    validate_csv_data,
)
from src.importers.schemas import ColumnMapping
from src.ledger.storage import HoldingsStorage


def test_parse_csv_line_keeps_quoted_commas():
    assert parse_csv_line('"Acme, Inc",ACME, 10 ') == ["Acme, Inc", "ACME", "10"]


def test_parse_csv_minimal():
    parsed = parse_csv("a,b\n1,2")
    assert parsed.headers == ["a", "b"]
    assert parsed.rows == [{"a": "1", "b": "2"}]


def test_parse_csv_skips_blank_lines_and_pads_short_rows():
    parsed = parse_csv("Symbol,Shares,Notes\n\nAAA,10\nBBB,5,long term\n")
    assert parsed.headers == ["Symbol", "Shares", "Notes"]
    assert parsed.row_count == 2
    assert parsed.rows[0] == {"Symbol": "AAA", "Shares": "10", "Notes": ""}
    assert parsed.rows[1]["Notes"] == "long term"


def test_parse_csv_rejects_empty_input():
    with pytest.raises(CsvParseError, match="CSV file is empty"):
        parse_csv(" \n\n")


def test_detect_column_mapping_from_common_headers():
    mapping = detect_column_mapping(["Ticker", "Company Name", "Qty", "Purchase Date", "Cost", "Remarks"])
    assert mapping.symbol == "Ticker"
    assert mapping.company_name == "Company Name"
    assert mapping.shares_count == "Qty"
    assert mapping.date_acquired == "Purchase Date"
    assert mapping.purchase_price == "Cost"
    assert mapping.notes == "Remarks"


def test_detect_column_mapping_first_header_wins():
    mapping = detect_column_mapping(["Symbol", "Stock", "Units"])
    assert mapping.symbol == "Symbol"
    assert mapping.shares_count == "Units"


def test_detect_column_mapping_ignores_blank_headers():
    mapping = detect_column_mapping(["", "Symbol"])
    assert mapping.symbol == "Symbol"


def test_validate_requires_symbol_mapping_and_values():
    rows = [{"A": "x"}]
    assert validate_csv_data(rows, ColumnMapping()) == ["No column mapped to Symbol (required)"]
    assert validate_csv_data([{"Sym": " "}], ColumnMapping(symbol="Sym")) == ["No valid symbols found in data"]
    assert validate_csv_data([{"Sym": "ok"}], ColumnMapping(symbol="Sym")) == []


def test_import_builds_holdings_and_reports_row_errors(cache):
    storage = HoldingsStorage(cache)
    parsed = parse_csv(
        "Symbol,Company,Shares,Date,Price\n"
        "acme,Acme Corp,100,01/15/2024,10.5\n"
        ",Nobody,5,,\n"
        "BETA,Beta,-3,,\n"
        "GAMMA,Gamma,abc,not a date,\n"
    )
    mapping = detect_column_mapping(parsed.headers)
    result = import_holdings_from_csv(storage, parsed.rows, mapping)

    assert result.total == 4
    assert result.success == 2
    assert result.errors == 2
    assert [e.row for e in result.error_details] == [2, 3]
    assert result.error_details[0].error == "Missing symbol"

    holdings = storage.load_local()
    by_symbol = {h.symbol: h for h in holdings}
    assert set(by_symbol) == {"ACME", "GAMMA"}
    assert by_symbol["ACME"].shares_count == 100
    assert by_symbol["ACME"].purchase_price == 10.5
    assert by_symbol["ACME"].date_acquired == dt.date(2024, 1, 15)
    assert by_symbol["GAMMA"].shares_count is None
    assert by_symbol["GAMMA"].date_acquired is None


def test_importing_twice_duplicates_holdings(cache):
    storage = HoldingsStorage(cache)
    parsed = parse_csv("Symbol,Shares\nAAA,1\nBBB,2\n")
    mapping = detect_column_mapping(parsed.headers)
    import_holdings_from_csv(storage, parsed.rows, mapping)
    import_holdings_from_csv(storage, parsed.rows, mapping)
    holdings = storage.load_local()
    assert len(holdings) == 4
    assert len({h.id for h in holdings}) == 4


def test_import_with_no_valid_rows_writes_nothing(cache):
    storage = HoldingsStorage(cache)
    result = import_holdings_from_csv(storage, [{"Symbol": ""}], ColumnMapping(symbol="Symbol"))
    assert result.success == 0
    assert result.errors == 1
    assert cache.get("silentLedger_holdings") is None
