from __future__ import annotations

import sys
from pathlib import Path
from typing import Sequence

import pytest
from sqlalchemy.orm import Session, sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from src.core.types import DatabaseStatus, Holding, PdfAttachment
from src.db.init_db import init_db
from src.db.session import make_engine
from src.ledger.cache import LocalCache
from src.ledger.remote import RemoteError, RemoteStore


class FakeRemote(RemoteStore):
    """In-memory stand-in for the sync API. Set `fail = True` to simulate an outage."""

    def __init__(self, holdings: Sequence[Holding] = ()):
        self.holdings: dict[str, Holding] = {h.id: h for h in holdings}
        self.pdfs: list[PdfAttachment] = []
        self.fail = False
        self.sync_calls: list[list[str]] = []
        self.deleted: list[str] = []

    def _check(self) -> None:
        if self.fail:
            raise RemoteError("connection refused")

    def fetch_holdings(self) -> list[Holding]:
        self._check()
        return [h.model_copy(deep=True) for h in self.holdings.values()]

    def sync_holdings(self, holdings: Sequence[Holding]) -> int:
        self._check()
        self.sync_calls.append([h.id for h in holdings])
        for h in holdings:
            self.holdings[h.id] = h.model_copy(deep=True)
        return len(holdings)

    def delete_holding(self, holding_id: str) -> None:
        self._check()
        self.deleted.append(holding_id)
        self.holdings.pop(holding_id, None)

    def fetch_pdfs(self) -> list[PdfAttachment]:
        self._check()
        return list(self.pdfs)

    def replace_pdfs(self, pdfs: Sequence[PdfAttachment]) -> int:
        self._check()
        self.pdfs = list(pdfs)
        return len(pdfs)

    def status(self) -> DatabaseStatus:
        self._check()
        entries = sum(len(h.ledger_entries) for h in self.holdings.values())
        return DatabaseStatus(holdings_count=len(self.holdings), entries_count=entries)


@pytest.fixture()
def session() -> Session:
    engine = make_engine("sqlite:///:memory:")
    init_db(engine)
    SessionLocal = sessionmaker(bind=engine, class_=Session, autoflush=False, autocommit=False)
    with SessionLocal() as s:
        yield s
    engine.dispose()


@pytest.fixture()
def cache(tmp_path: Path) -> LocalCache:
    return LocalCache(tmp_path / "cache")


@pytest.fixture()
def fake_remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture()
def api_engine(tmp_path: Path):
    engine = make_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def api_client(api_engine, monkeypatch):
    from fastapi.testclient import TestClient

    from src.app.db import db_session
    from src.app.main import create_app

    monkeypatch.delenv("APP_PASSWORD", raising=False)
    SessionLocal = sessionmaker(bind=api_engine, class_=Session, autoflush=False, autocommit=False)

    def _session():
        s = SessionLocal()
        try:
            yield s
        finally:
            s.close()

    app = create_app(init_database=False)
    app.dependency_overrides[db_session] = _session
    return TestClient(app)
