from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator


MAPPABLE_FIELDS: tuple[str, ...] = (
    "symbol",
    "company_name",
    "shares_count",
    "date_acquired",
    "purchase_price",
    "notes",
)


def _none_if_blank(v):
    if v is None:
        return None
    if isinstance(v, str) and v.strip() == "":
        return None
    return v


class ColumnMapping(BaseModel):
    """CSV header chosen for each holding field; `None` means the field is not imported."""

    symbol: Optional[str] = None
    company_name: Optional[str] = None
    shares_count: Optional[str] = None
    date_acquired: Optional[str] = None
    purchase_price: Optional[str] = None
    notes: Optional[str] = None

    @field_validator(*MAPPABLE_FIELDS, mode="before")
    @classmethod
    def _blank_to_none(cls, v):
        return _none_if_blank(v)


class ImportRowError(BaseModel):
    row: int
    error: str


class CsvImportResult(BaseModel):
    total: int = 0
    success: int = 0
    errors: int = 0
    error_details: list[ImportRowError] = Field(default_factory=list)
