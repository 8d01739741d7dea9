from __future__ import annotations

import logging
from typing import Sequence

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from src.core.types import PdfAttachment
from src.db.models import PdfRecord

logger = logging.getLogger(__name__)

# Limit on the base64 data URL, counted in characters.
MAX_PDF_DATA_CHARS = 1024 * 1024


class PdfTooLargeError(ValueError):
    pass


def _model(rec: PdfRecord) -> PdfAttachment:
    return PdfAttachment(
        id=rec.id,
        name=rec.name,
        size=rec.size or "",
        size_bytes=rec.size_bytes,
        data=rec.data,
        uploaded_at=rec.uploaded_at,
    )


def list_pdfs(session: Session) -> list[PdfAttachment]:
    stmt = select(PdfRecord).order_by(PdfRecord.created_at.desc(), PdfRecord.id)
    return [_model(r) for r in session.execute(stmt).scalars()]


def check_sizes(pdfs: Sequence[PdfAttachment]) -> None:
    for p in pdfs:
        if len(p.data) > MAX_PDF_DATA_CHARS:
            kb = round(len(p.data) / 1024)
            raise PdfTooLargeError(f'PDF "{p.name}" is too large ({kb}KB). Maximum size is 1MB.')


def replace_pdfs(session: Session, pdfs: Sequence[PdfAttachment]) -> int:
    """Replace the whole PDF set. Nothing is deleted unless every item fits."""
    check_sizes(pdfs)
    session.execute(delete(PdfRecord))
    for p in pdfs:
        session.add(
            PdfRecord(
                id=p.id,
                name=p.name,
                size=p.size or None,
                size_bytes=p.size_bytes,
                data=p.data,
                uploaded_at=p.uploaded_at,
            )
        )
    session.flush()
    logger.info("Stored %s PDFs", len(pdfs))
    return len(pdfs)


def delete_pdf(session: Session, pdf_id: str) -> bool:
    rec = session.get(PdfRecord, pdf_id)
    if rec is None:
        return False
    session.delete(rec)
    session.flush()
    return True
