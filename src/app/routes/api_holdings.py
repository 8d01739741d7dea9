from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from src.app.auth import require_actor
from src.app.db import db_session
from src.app.utils import error_body
from src.core.holdings_service import (
    DuplicateHoldingError,
    delete_holding,
    insert_holding,
    list_holdings,
    sync_holdings,
)
from src.core.types import Holding, IdRequest, SyncRequest
from src.db.audit import holding_snapshot, log_change
from src.db.init_db import init_db, table_counts
from src.db.models import HoldingRecord

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["api"])


def _db_error(session: Session, e: SQLAlchemyError) -> JSONResponse:
    session.rollback()
    logger.error("Database error: %s", e)
    return JSONResponse(status_code=500, content=error_body(str(e)))


@router.get("/holdings")
def holdings_list(session: Session = Depends(db_session), actor: str = Depends(require_actor)):
    try:
        return [h.to_wire() for h in list_holdings(session)]
    except SQLAlchemyError as e:
        return _db_error(session, e)


@router.post("/holdings")
def holdings_create(
    holding: Holding,
    session: Session = Depends(db_session),
    actor: str = Depends(require_actor),
):
    try:
        rec = insert_holding(session, holding)
        log_change(
            session,
            actor=actor,
            action="CREATE",
            entity="Holding",
            entity_id=rec.id,
            old=None,
            new=holding_snapshot(rec),
        )
        session.commit()
    except (DuplicateHoldingError, IntegrityError) as e:
        session.rollback()
        return JSONResponse(status_code=409, content=error_body(str(e)))
    except SQLAlchemyError as e:
        return _db_error(session, e)
    return {"success": True, "id": holding.id}


@router.delete("/holdings")
def holdings_delete(
    body: IdRequest,
    session: Session = Depends(db_session),
    actor: str = Depends(require_actor),
):
    try:
        rec = session.get(HoldingRecord, body.id)
        old = holding_snapshot(rec) if rec is not None else None
        deleted = delete_holding(session, body.id)
        if deleted:
            log_change(
                session,
                actor=actor,
                action="DELETE",
                entity="Holding",
                entity_id=body.id,
                old=old,
                new=None,
            )
        session.commit()
    except SQLAlchemyError as e:
        return _db_error(session, e)
    return {"success": True, "deleted": deleted}


@router.post("/sync")
def holdings_sync(
    body: SyncRequest,
    session: Session = Depends(db_session),
    actor: str = Depends(require_actor),
):
    try:
        synced = sync_holdings(session, body.holdings)
        log_change(
            session,
            actor=actor,
            action="SYNC",
            entity="Holding",
            entity_id=None,
            old=None,
            new={"ids": [h.id for h in body.holdings]},
            note=f"synced {synced} holdings",
        )
        session.commit()
    except SQLAlchemyError as e:
        return _db_error(session, e)
    return {"success": True, "synced": synced}


@router.get("/init")
def database_status(session: Session = Depends(db_session), actor: str = Depends(require_actor)):
    try:
        counts = table_counts(session)
    except SQLAlchemyError as e:
        session.rollback()
        logger.error("Database status check failed: %s", e)
        return JSONResponse(
            status_code=500,
            content={**error_body(str(e)), "connected": False},
        )
    return {"success": True, "connected": True, **counts}


@router.post("/init")
def database_init(session: Session = Depends(db_session), actor: str = Depends(require_actor)):
    try:
        init_db(session.get_bind())
        counts = table_counts(session)
    except SQLAlchemyError as e:
        return _db_error(session, e)
    logger.info("Database initialised by %s", actor)
    return {"success": True, "connected": True, "message": "Database initialized", **counts}
