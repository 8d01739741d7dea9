from __future__ import annotations

import datetime as dt
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from src.utils.ids import generate_id
from src.utils.money import to_float_or_none
from src.utils.time import current_timestamp, ensure_utc, parse_date, parse_date_or_none


EntryType = Literal["buy", "sell", "transfer", "note", "other"]
ENTRY_TYPES: tuple[str, ...] = ("buy", "sell", "transfer", "note", "other")


def _none_if_blank(v):
    if v is None:
        return None
    if isinstance(v, str) and v.strip() == "":
        return None
    return v


def _optional_amount(v) -> Optional[float]:
    v = _none_if_blank(v)
    if v is None:
        return None
    f = to_float_or_none(v)
    if f is None:
        return None
    if f < 0:
        raise ValueError("must be non-negative")
    return f


def _text(v) -> str:
    if v is None:
        return ""
    return str(v).strip()


class _HoldingFields(BaseModel):
    model_config = ConfigDict(extra="ignore")

    symbol: str
    company_name: str = ""
    shares_count: Optional[float] = None
    purchase_price: Optional[float] = None
    date_acquired: Optional[dt.date] = None
    notes: str = ""

    @field_validator("symbol", mode="before")
    @classmethod
    def _symbol(cls, v) -> str:
        s = _text(v).upper()
        if not s:
            raise ValueError("Symbol is required")
        return s

    @field_validator("company_name", "notes", mode="before")
    @classmethod
    def _blank_text(cls, v) -> str:
        return _text(v)

    @field_validator("shares_count", "purchase_price", mode="before")
    @classmethod
    def _amounts(cls, v):
        return _optional_amount(v)

    @field_validator("date_acquired", mode="before")
    @classmethod
    def _acquired(cls, v):
        v = _none_if_blank(v)
        if v is None:
            return None
        return parse_date_or_none(v)


class HoldingInput(_HoldingFields):
    """Editable fields of a holding, as entered in a form or mapped from a CSV row."""


class _EntryFields(BaseModel):
    model_config = ConfigDict(extra="ignore")

    entry_type: EntryType = "note"
    shares: Optional[float] = None
    price_per_share: Optional[float] = None
    description: str = ""

    @field_validator("entry_type", mode="before")
    @classmethod
    def _entry_type(cls, v) -> str:
        s = _text(v).lower()
        return s or "note"

    @field_validator("shares", "price_per_share", mode="before")
    @classmethod
    def _amounts(cls, v):
        return _optional_amount(v)

    @field_validator("description", mode="before")
    @classmethod
    def _description(cls, v) -> str:
        return _text(v)


class LedgerEntryInput(_EntryFields):
    date: Optional[dt.date] = None

    @field_validator("date", mode="before")
    @classmethod
    def _date(cls, v):
        v = _none_if_blank(v)
        if v is None:
            return None
        return parse_date(v)


class LedgerEntry(_EntryFields):
    id: str = Field(default_factory=generate_id)
    date: dt.date
    created_at: dt.datetime = Field(default_factory=current_timestamp)

    @field_validator("date", mode="before")
    @classmethod
    def _date(cls, v):
        return parse_date(v)

    @field_validator("created_at", mode="after")
    @classmethod
    def _utc(cls, v: dt.datetime) -> dt.datetime:
        return ensure_utc(v)


class Holding(_HoldingFields):
    id: str = Field(default_factory=generate_id)
    ledger_entries: list[LedgerEntry] = Field(default_factory=list)
    created_at: dt.datetime = Field(default_factory=current_timestamp)
    updated_at: dt.datetime = Field(default_factory=current_timestamp)

    @field_validator("ledger_entries", mode="before")
    @classmethod
    def _entries(cls, v):
        return [] if v is None else v

    @field_validator("created_at", "updated_at", mode="after")
    @classmethod
    def _utc(cls, v: dt.datetime) -> dt.datetime:
        return ensure_utc(v)

    @model_validator(mode="after")
    def _updated_not_before_created(self) -> "Holding":
        if self.updated_at < self.created_at:
            self.updated_at = self.created_at
        return self

    def touch(self) -> None:
        self.updated_at = max(current_timestamp(), self.created_at)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class PdfAttachment(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(default_factory=generate_id)
    name: str
    size: str = ""
    size_bytes: int = Field(default=0, alias="sizeBytes")
    data: str
    uploaded_at: Optional[dt.datetime] = Field(default=None, alias="uploadedAt")

    @field_validator("size_bytes", mode="before")
    @classmethod
    def _size_bytes(cls, v):
        return int(to_float_or_none(_none_if_blank(v)) or 0)

    @field_validator("uploaded_at", mode="after")
    @classmethod
    def _utc(cls, v: Optional[dt.datetime]) -> Optional[dt.datetime]:
        return ensure_utc(v) if v is not None else None

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# Request bodies for the remote API.


class IdRequest(BaseModel):
    id: str


class SyncRequest(BaseModel):
    holdings: list[Holding]


class PdfsRequest(BaseModel):
    pdfs: list[PdfAttachment]


class DatabaseStatus(BaseModel):
    success: bool = True
    connected: bool = True
    holdings_count: int = 0
    entries_count: int = 0
    message: Optional[str] = None
