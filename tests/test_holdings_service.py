from __future__ import annotations

import datetime as dt

import pytest

from src.core.holdings_service import (
    DuplicateHoldingError,
    delete_holding,
    insert_holding,
    list_holdings,
    sync_holdings,
)
from src.core.pdf_service import PdfTooLargeError, list_pdfs, replace_pdfs
from src.core.types import Holding, LedgerEntry, PdfAttachment
from src.db.models import LedgerEntryRecord


def test_insert_then_duplicate(session):
    h = Holding(symbol="ins", ledger_entries=[LedgerEntry(date="2024-01-01", entry_type="buy", shares=3)])
    insert_holding(session, h)
    session.commit()
    with pytest.raises(DuplicateHoldingError):
        insert_holding(session, h)

    [back] = list_holdings(session)
    assert back.symbol == "INS"
    assert back.ledger_entries[0].shares == 3
    assert back.created_at.tzinfo is not None


def test_sync_moves_entry_to_new_parent_and_keeps_absent_rows(session):
    entry = LedgerEntry(id="e1", date=dt.date(2024, 1, 1), entry_type="note")
    a = Holding(id="a", symbol="A", ledger_entries=[entry])
    b = Holding(id="b", symbol="B")
    assert sync_holdings(session, [a, b]) == 2
    session.commit()

    moved = b.model_copy(update={"ledger_entries": [entry]})
    sync_holdings(session, [moved])
    session.commit()

    rows = {h.id: h for h in list_holdings(session)}
    assert set(rows) == {"a", "b"}
    assert [e.id for e in rows["b"].ledger_entries] == ["e1"]
    assert rows["a"].ledger_entries == []


def test_delete_removes_entries(session):
    h = Holding(symbol="DEL", ledger_entries=[LedgerEntry(date="2024-02-02"), LedgerEntry(date="2024-02-03")])
    sync_holdings(session, [h])
    session.commit()

    assert delete_holding(session, h.id) is True
    session.commit()
    assert session.query(LedgerEntryRecord).count() == 0
    assert delete_holding(session, h.id) is False


def test_replace_pdfs_checks_every_item_first(session):
    replace_pdfs(session, [PdfAttachment(id="keep", name="keep.pdf", data="data:x")])
    session.commit()

    with pytest.raises(PdfTooLargeError):
        replace_pdfs(
            session,
            [PdfAttachment(name="ok.pdf", data="data:y"), PdfAttachment(name="big.pdf", data="z" * (1024 * 1024 + 1))],
        )
    session.rollback()
    assert [p.id for p in list_pdfs(session)] == ["keep"]


def test_sync_keeps_stored_created_at(session):
    first = Holding(id="h", symbol="KEEP", created_at="2024-01-01T00:00:00Z")
    sync_holdings(session, [first])
    session.commit()

    later = first.model_copy(
        update={
            "symbol": "KEPT",
            "created_at": dt.datetime(2025, 6, 1, tzinfo=dt.timezone.utc),
            "updated_at": dt.datetime(2025, 6, 2, tzinfo=dt.timezone.utc),
        }
    )
    sync_holdings(session, [later])
    session.commit()

    [back] = list_holdings(session)
    assert back.symbol == "KEPT"
    assert back.created_at == dt.datetime(2024, 1, 1, tzinfo=dt.timezone.utc)
    assert back.updated_at == dt.datetime(2025, 6, 2, tzinfo=dt.timezone.utc)
