from __future__ import annotations

import base64
import binascii
import logging
from typing import Optional

from pydantic import ValidationError

from src.core.types import PdfAttachment
from src.ledger.cache import PDFS_KEY, LocalCache
from src.ledger.remote import RemoteError, RemoteStore
from src.utils.time import current_timestamp

logger = logging.getLogger(__name__)

DATA_URL_PREFIX = "data:application/pdf;base64,"


def format_file_size(size_bytes: int) -> str:
    if size_bytes < 1024:
        return f"{size_bytes} B"
    if size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    return f"{size_bytes / (1024 * 1024):.1f} MB"


def is_pdf(name: str, content: bytes) -> bool:
    return (name or "").lower().endswith(".pdf") or content[:5] == b"%PDF-"


def to_data_url(content: bytes) -> str:
    return DATA_URL_PREFIX + base64.b64encode(content).decode("ascii")


def from_data_url(data: str) -> bytes:
    payload = data.split(",", 1)[1] if data.startswith("data:") and "," in data else data
    try:
        return base64.b64decode(payload, validate=True)
    except binascii.Error as e:
        raise ValueError("PDF payload is not valid base64") from e


class PdfLibrary:
    """
    Uploaded PDFs, kept under their own cache key and mirrored to `/api/pdfs`.

    Unlike holdings, a reachable remote always wins on load, even when it is
    empty; the local copy is only used while the remote is unreachable.
    """

    def __init__(self, cache: LocalCache, remote: Optional[RemoteStore] = None):
        self.cache = cache
        self.remote = remote
        self.items: list[PdfAttachment] = []

    def _load_local(self) -> list[PdfAttachment]:
        raw = self.cache.get(PDFS_KEY)
        if not isinstance(raw, list):
            return []
        out: list[PdfAttachment] = []
        for item in raw:
            try:
                out.append(PdfAttachment.model_validate(item))
            except ValidationError as e:
                logger.error("Skipping unreadable cached PDF: %s", e)
        return out

    def _write_local(self) -> None:
        self.cache.set(PDFS_KEY, [p.to_wire() for p in self.items])

    def load(self) -> list[PdfAttachment]:
        if self.remote is not None:
            try:
                self.items = self.remote.fetch_pdfs()
                self._write_local()
                logger.info("Loaded %s PDFs from cloud", len(self.items))
                return list(self.items)
            except RemoteError as e:
                logger.warning("Cloud unavailable, using local PDFs: %s", e)
        self.items = self._load_local()
        return list(self.items)

    def save(self) -> bool:
        self._write_local()
        if self.remote is None:
            return True
        try:
            synced = self.remote.replace_pdfs(self.items)
        except RemoteError as e:
            logger.warning("Failed to sync PDFs to cloud: %s", e)
            return False
        logger.info("Synced %s PDFs to cloud", synced)
        return True

    def add(self, name: str, content: bytes) -> Optional[PdfAttachment]:
        if not is_pdf(name, content):
            logger.info("Ignoring non-PDF upload %s", name)
            return None
        self.load()
        pdf = PdfAttachment(
            name=name,
            size=format_file_size(len(content)),
            size_bytes=len(content),
            data=to_data_url(content),
            uploaded_at=current_timestamp(),
        )
        self.items.append(pdf)
        self.save()
        return pdf

    def get(self, pdf_id: str) -> Optional[PdfAttachment]:
        for p in self.items:
            if p.id == pdf_id:
                return p
        return None

    def extract(self, pdf_id: str) -> Optional[bytes]:
        pdf = self.get(pdf_id)
        if pdf is None:
            return None
        return from_data_url(pdf.data)

    def delete(self, pdf_id: str) -> bool:
        kept = [p for p in self.items if p.id != pdf_id]
        if len(kept) == len(self.items):
            return False
        self.items = kept
        self.save()
        return True
