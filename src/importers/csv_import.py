from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence

from pydantic import ValidationError

from src.core.types import Holding
from src.importers.schemas import ColumnMapping, CsvImportResult, ImportRowError
from src.utils.money import to_float_or_none

logger = logging.getLogger(__name__)


# Header synonyms per holding field, checked in order.
COLUMN_PATTERNS: dict[str, tuple[str, ...]] = {
    "symbol": ("symbol", "ticker", "stock", "code", "scrip"),
    "company_name": ("company", "name", "companyname", "company name"),
    "shares_count": ("shares", "quantity", "qty", "units", "share", "no of shares"),
    "date_acquired": ("date", "acquired", "purchase date", "buy date", "date acquired"),
    "purchase_price": ("price", "cost", "purchase price", "buy price", "rate", "price per share"),
    "notes": ("notes", "remarks", "description", "memo", "comments"),
}


class CsvParseError(ValueError):
    pass


class HoldingsSink(Protocol):
    def append_holdings(self, batch: Sequence[Holding]) -> list[Holding]: ...


@dataclass
class ParsedCsv:
    headers: list[str]
    rows: list[dict[str, str]] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.rows)


def parse_csv_line(line: str) -> list[str]:
    """
    Split one line on commas. A double quote toggles the inside-quotes state, so
    `"x,y",z` yields `["x,y", "z"]`. Quotes never span lines.
    """
    out: list[str] = []
    current: list[str] = []
    in_quotes = False
    for ch in line:
        if ch == '"':
            in_quotes = not in_quotes
        elif ch == "," and not in_quotes:
            out.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
    out.append("".join(current).strip())
    return out


def parse_csv(text: str) -> ParsedCsv:
    lines = [ln for ln in (text or "").split("\n") if ln.strip()]
    if not lines:
        raise CsvParseError("CSV file is empty")
    headers = parse_csv_line(lines[0])
    rows: list[dict[str, str]] = []
    for ln in lines[1:]:
        values = parse_csv_line(ln)
        rows.append({h: (values[i] if i < len(values) else "") for i, h in enumerate(headers)})
    return ParsedCsv(headers=headers, rows=rows)


def _matches(header: str, pattern: str) -> bool:
    return pattern in header or header in pattern


def detect_column_mapping(headers: Sequence[str]) -> ColumnMapping:
    found: dict[str, str] = {}
    for header in headers:
        normalized = (header or "").strip().lower()
        if not normalized:
            continue
        for fname, patterns in COLUMN_PATTERNS.items():
            if fname in found:
                continue
            if any(_matches(normalized, p) for p in patterns):
                found[fname] = header
    return ColumnMapping(**found)


def validate_csv_data(rows: Sequence[dict[str, str]], mapping: ColumnMapping) -> list[str]:
    errors: list[str] = []
    if not mapping.symbol:
        errors.append("No column mapped to Symbol (required)")
        return errors
    if not any((r.get(mapping.symbol) or "").strip() for r in rows):
        errors.append("No valid symbols found in data")
    return errors


def _cell(row: dict[str, str], column: str | None) -> str:
    if not column:
        return ""
    return (row.get(column) or "").strip()


def _holding_from_row(row: dict[str, str], mapping: ColumnMapping) -> Holding:
    symbol = _cell(row, mapping.symbol).upper()
    if not symbol:
        raise ValueError("Missing symbol")
    data: dict[str, Any] = {
        "symbol": symbol,
        "company_name": _cell(row, mapping.company_name),
        "shares_count": to_float_or_none(_cell(row, mapping.shares_count)),
        "date_acquired": _cell(row, mapping.date_acquired) or None,
        "purchase_price": to_float_or_none(_cell(row, mapping.purchase_price)),
        "notes": _cell(row, mapping.notes),
    }
    return Holding.model_validate(data)


def import_holdings_from_csv(
    storage: HoldingsSink,
    rows: Sequence[dict[str, str]],
    mapping: ColumnMapping,
) -> CsvImportResult:
    """
    Build one new holding per row and persist the whole batch once, appended to
    the existing holdings. Nothing is deduplicated: importing the same file twice
    yields every holding twice.
    """
    result = CsvImportResult(total=len(rows))
    batch: list[Holding] = []
    for i, row in enumerate(rows, start=1):
        try:
            batch.append(_holding_from_row(row, mapping))
        except ValidationError as e:
            first = e.errors()[0] if e.errors() else {}
            loc = ".".join(str(p) for p in first.get("loc", ()))
            result.error_details.append(ImportRowError(row=i, error=f"{loc}: {first.get('msg', 'invalid value')}"))
            continue
        except ValueError as e:
            result.error_details.append(ImportRowError(row=i, error=str(e)))
            continue
    result.success = len(batch)
    result.errors = len(result.error_details)

    if batch:
        storage.append_holdings(batch)
    logger.info("CSV import: %s of %s rows imported", result.success, result.total)
    return result
