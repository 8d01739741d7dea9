from __future__ import annotations

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from src.db.models import Base, HoldingRecord, LedgerEntryRecord
from src.db.session import get_engine


def init_db(engine: Optional[Engine] = None) -> None:
    Base.metadata.create_all(bind=engine or get_engine())


def table_counts(session: Session) -> dict[str, int]:
    holdings = session.execute(select(func.count()).select_from(HoldingRecord)).scalar_one()
    entries = session.execute(select(func.count()).select_from(LedgerEntryRecord)).scalar_one()
    return {"holdings_count": int(holdings), "entries_count": int(entries)}
