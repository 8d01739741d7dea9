from __future__ import annotations

from typing import Any, Optional

from sqlalchemy.orm import Session

from src.app.utils import jsonable
from src.db.models import AuditLog, HoldingRecord, PdfRecord
from src.utils.time import utcnow


def holding_snapshot(rec: HoldingRecord) -> dict[str, Any]:
    return {
        "symbol": rec.symbol,
        "company_name": rec.company_name,
        "shares_count": rec.shares_count,
        "purchase_price": rec.purchase_price,
        "date_acquired": jsonable(rec.date_acquired),
        "entries": len(rec.ledger_entries),
    }


def pdf_snapshot(rec: PdfRecord) -> dict[str, Any]:
    # The payload itself is too large for the audit trail.
    return {"name": rec.name, "size_bytes": rec.size_bytes}


def log_change(
    session: Session,
    *,
    actor: str,
    action: str,
    entity: str,
    entity_id: Optional[str],
    old: Optional[dict[str, Any]],
    new: Optional[dict[str, Any]],
    note: Optional[str] = None,
) -> None:
    session.add(
        AuditLog(
            at=utcnow(),
            actor=actor,
            action=action,
            entity=entity,
            entity_id=entity_id,
            old_json=jsonable(old),
            new_json=jsonable(new),
            note=note,
        )
    )
