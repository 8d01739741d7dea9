from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from src.core.types import Holding, LedgerEntry
from src.db.models import HoldingRecord, LedgerEntryRecord
from src.utils.time import ensure_utc

logger = logging.getLogger(__name__)


class DuplicateHoldingError(Exception):
    pass


def _entry_model(rec: LedgerEntryRecord) -> LedgerEntry:
    return LedgerEntry(
        id=rec.id,
        date=rec.date,
        entry_type=rec.entry_type,
        shares=rec.shares,
        price_per_share=rec.price_per_share,
        description=rec.description,
        created_at=rec.created_at,
    )


def holding_model(rec: HoldingRecord) -> Holding:
    entries = sorted(rec.ledger_entries, key=lambda e: (e.date, e.created_at), reverse=True)
    return Holding(
        id=rec.id,
        symbol=rec.symbol,
        company_name=rec.company_name,
        shares_count=rec.shares_count,
        purchase_price=rec.purchase_price,
        date_acquired=rec.date_acquired,
        notes=rec.notes,
        created_at=rec.created_at,
        updated_at=rec.updated_at,
        ledger_entries=[_entry_model(e) for e in entries],
    )


def list_holdings(session: Session) -> list[Holding]:
    """All holdings, newest first, each with its ledger entries newest date first."""
    stmt = (
        select(HoldingRecord)
        .options(selectinload(HoldingRecord.ledger_entries))
        .order_by(HoldingRecord.created_at.desc(), HoldingRecord.id)
    )
    return [holding_model(r) for r in session.execute(stmt).scalars()]


def _apply_holding(rec: HoldingRecord, h: Holding) -> None:
    rec.symbol = h.symbol
    rec.company_name = h.company_name or None
    rec.shares_count = h.shares_count
    rec.purchase_price = h.purchase_price
    rec.date_acquired = h.date_acquired
    rec.notes = h.notes or None
    if rec.created_at is None:
        rec.created_at = h.created_at
    rec.updated_at = max(h.updated_at, ensure_utc(rec.created_at))


def _apply_entry(rec: LedgerEntryRecord, e: LedgerEntry) -> None:
    rec.date = e.date
    rec.entry_type = e.entry_type
    rec.shares = e.shares
    rec.price_per_share = e.price_per_share
    rec.description = e.description or None
    rec.created_at = e.created_at


def insert_holding(session: Session, holding: Holding) -> HoldingRecord:
    if session.get(HoldingRecord, holding.id) is not None:
        raise DuplicateHoldingError(f"Holding {holding.id} already exists")
    rec = HoldingRecord(id=holding.id)
    _apply_holding(rec, holding)
    for e in holding.ledger_entries:
        ent = LedgerEntryRecord(id=e.id)
        _apply_entry(ent, e)
        rec.ledger_entries.append(ent)
    session.add(rec)
    session.flush()
    return rec


def delete_holding(session: Session, holding_id: str) -> bool:
    rec = session.get(HoldingRecord, holding_id)
    if rec is None:
        return False
    # Entries are deleted explicitly; the FK cascade is not relied on.
    for entry in list(rec.ledger_entries):
        session.delete(entry)
    session.delete(rec)
    session.flush()
    return True


def sync_holdings(session: Session, holdings: Iterable[Holding]) -> int:
    """
    Upsert every holding and ledger entry by id.

    Rows missing from the payload are left alone; deletions only happen through
    `delete_holding`. An entry id seen under a different holding is moved to the
    holding that carries it now.
    """
    count = 0
    for h in holdings:
        rec = session.get(HoldingRecord, h.id)
        if rec is None:
            rec = HoldingRecord(id=h.id)
            session.add(rec)
        _apply_holding(rec, h)
        for e in h.ledger_entries:
            ent = session.get(LedgerEntryRecord, e.id)
            if ent is None:
                ent = LedgerEntryRecord(id=e.id)
                session.add(ent)
            ent.holding_id = h.id
            _apply_entry(ent, e)
        session.flush()
        count += 1
    logger.info("Synced %s holdings", count)
    return count
