from __future__ import annotations

import datetime as dt
from typing import Any, Optional

try:
    from sqlalchemy import JSON, Date, Float, ForeignKey, Index, Integer, String, Text
    from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
except Exception as e:  # pragma: no cover
    raise RuntimeError(
        "Failed to import SQLAlchemy.\n\n"
        "Fix: create a virtualenv and install the project:\n"
        "     python -m venv .venv\n"
        "     source .venv/bin/activate\n"
        "     pip install -e .\n\n"
        f"Original error: {type(e).__name__}: {e}"
    ) from e

from src.utils.time import utcnow
from src.db.types import UTCDateTime


class Base(DeclarativeBase):
    pass


class HoldingRecord(Base):
    __tablename__ = "holdings"
    __table_args__ = (Index("idx_holdings_symbol", "symbol"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    symbol: Mapped[str] = mapped_column(String(32), nullable=False)
    company_name: Mapped[Optional[str]] = mapped_column(String(200))
    shares_count: Mapped[Optional[float]] = mapped_column(Float)
    date_acquired: Mapped[Optional[dt.date]] = mapped_column(Date)
    purchase_price: Mapped[Optional[float]] = mapped_column(Float)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)
    updated_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)

    ledger_entries: Mapped[list["LedgerEntryRecord"]] = relationship(
        back_populates="holding",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class LedgerEntryRecord(Base):
    __tablename__ = "ledger_entries"
    __table_args__ = (
        Index("idx_ledger_holding_id", "holding_id"),
        Index("idx_ledger_date", "date"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    holding_id: Mapped[str] = mapped_column(ForeignKey("holdings.id", ondelete="CASCADE"), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    entry_type: Mapped[str] = mapped_column(String(16), nullable=False)
    shares: Mapped[Optional[float]] = mapped_column(Float)
    price_per_share: Mapped[Optional[float]] = mapped_column(Float)
    description: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)

    holding: Mapped["HoldingRecord"] = relationship(back_populates="ledger_entries")


class PdfRecord(Base):
    __tablename__ = "pdfs"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    size: Mapped[Optional[str]] = mapped_column(String(32))
    size_bytes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    data: Mapped[str] = mapped_column(Text, nullable=False)
    uploaded_at: Mapped[Optional[dt.datetime]] = mapped_column(UTCDateTime())
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)


class AuditLog(Base):
    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)
    actor: Mapped[str] = mapped_column(String(200), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    entity: Mapped[str] = mapped_column(String(100), nullable=False)
    entity_id: Mapped[Optional[str]] = mapped_column(String(100))
    old_json: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON)
    new_json: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON)
    note: Mapped[Optional[str]] = mapped_column(Text)
