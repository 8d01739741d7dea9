from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.app.auth import require_actor
from src.app.db import db_session
from src.app.utils import error_body
from src.core.pdf_service import PdfTooLargeError, delete_pdf, list_pdfs, replace_pdfs
from src.core.types import IdRequest, PdfsRequest
from src.db.audit import log_change, pdf_snapshot
from src.db.models import PdfRecord

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/pdfs", tags=["api"])


@router.get("")
def pdfs_list(session: Session = Depends(db_session), actor: str = Depends(require_actor)):
    try:
        return [p.to_wire() for p in list_pdfs(session)]
    except SQLAlchemyError as e:
        logger.error("Failed to list PDFs: %s", e)
        return JSONResponse(status_code=500, content=error_body(str(e)))


@router.post("")
def pdfs_replace(
    body: PdfsRequest,
    session: Session = Depends(db_session),
    actor: str = Depends(require_actor),
):
    try:
        synced = replace_pdfs(session, body.pdfs)
        log_change(
            session,
            actor=actor,
            action="REPLACE",
            entity="Pdf",
            entity_id=None,
            old=None,
            new={"names": [p.name for p in body.pdfs]},
        )
        session.commit()
    except PdfTooLargeError as e:
        session.rollback()
        return JSONResponse(status_code=400, content=error_body(str(e)))
    except SQLAlchemyError as e:
        session.rollback()
        logger.error("Failed to store PDFs: %s", e)
        return JSONResponse(status_code=500, content=error_body(str(e)))
    return {"success": True, "synced": synced}


@router.delete("")
def pdfs_delete(
    body: IdRequest,
    session: Session = Depends(db_session),
    actor: str = Depends(require_actor),
):
    try:
        rec = session.get(PdfRecord, body.id)
        old = pdf_snapshot(rec) if rec is not None else None
        deleted = delete_pdf(session, body.id)
        if deleted:
            log_change(session, actor=actor, action="DELETE", entity="Pdf", entity_id=body.id, old=old, new=None)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error("Failed to delete PDF %s: %s", body.id, e)
        return JSONResponse(status_code=500, content=error_body(str(e)))
    return {"success": True, "deleted": deleted}
