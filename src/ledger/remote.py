from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

import httpx
from pydantic import ValidationError

from src.core.types import DatabaseStatus, Holding, PdfAttachment

logger = logging.getLogger(__name__)


class RemoteError(Exception):
    pass


def _synced_count(where: str, body: Any, default: int) -> int:
    if body is None:
        return default
    if not isinstance(body, dict):
        raise RemoteError(f"{where} returned an unexpected payload")
    value = body.get("synced", default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise RemoteError(f"{where} returned a non-integer synced count: {value!r}")
    return value


class RemoteStore(ABC):
    @abstractmethod
    def fetch_holdings(self) -> list[Holding]:
        raise NotImplementedError

    @abstractmethod
    def sync_holdings(self, holdings: Sequence[Holding]) -> int:
        raise NotImplementedError

    @abstractmethod
    def delete_holding(self, holding_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def fetch_pdfs(self) -> list[PdfAttachment]:
        raise NotImplementedError

    @abstractmethod
    def replace_pdfs(self, pdfs: Sequence[PdfAttachment]) -> int:
        raise NotImplementedError

    @abstractmethod
    def status(self) -> DatabaseStatus:
        raise NotImplementedError


class HttpRemoteStore(RemoteStore):
    """
    Client for the `/api/*` endpoints served by `src.app.main`.

    Transport failures, non-2xx responses and malformed payloads all surface as
    `RemoteError`. No retries; callers decide whether a failure matters.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout_s: Optional[float] = None,
        actor: Optional[str] = None,
        password: Optional[str] = None,
        client: Optional[httpx.Client] = None,
    ):
        if client is None:
            headers = {"X-Actor": actor} if actor else {}
            auth = httpx.BasicAuth(actor or "user", password) if password else None
            client = httpx.Client(base_url=base_url, timeout=timeout_s, headers=headers, auth=auth)
        self._client = client

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, payload: Any = None) -> Any:
        try:
            if payload is None:
                resp = self._client.request(method, path)
            else:
                resp = self._client.request(method, path, json=payload)
        except httpx.HTTPError as e:
            raise RemoteError(f"{method} {path} failed: {type(e).__name__}: {e}") from e
        if resp.status_code >= 400:
            detail = resp.text[:200]
            try:
                body = resp.json()
                if isinstance(body, dict):
                    detail = str(body.get("error") or body.get("detail") or detail)
            except ValueError:
                pass
            raise RemoteError(f"{method} {path} -> HTTP {resp.status_code}: {detail}")
        try:
            return resp.json()
        except ValueError as e:
            raise RemoteError(f"{method} {path} returned invalid JSON") from e

    def fetch_holdings(self) -> list[Holding]:
        payload = self._request("GET", "/api/holdings")
        if not isinstance(payload, list):
            raise RemoteError("GET /api/holdings did not return an array")
        try:
            return [Holding.model_validate(h) for h in payload]
        except ValidationError as e:
            raise RemoteError(f"GET /api/holdings returned an invalid holding: {e.error_count()} error(s)") from e

    def sync_holdings(self, holdings: Sequence[Holding]) -> int:
        body = self._request("POST", "/api/sync", {"holdings": [h.to_wire() for h in holdings]})
        synced = _synced_count("POST /api/sync", body, len(holdings))
        logger.debug("Synced %s holdings to cloud", synced)
        return synced

    def delete_holding(self, holding_id: str) -> None:
        self._request("DELETE", "/api/holdings", {"id": holding_id})

    def fetch_pdfs(self) -> list[PdfAttachment]:
        payload = self._request("GET", "/api/pdfs")
        if not isinstance(payload, list):
            raise RemoteError("GET /api/pdfs did not return an array")
        try:
            return [PdfAttachment.model_validate(p) for p in payload]
        except ValidationError as e:
            raise RemoteError(f"GET /api/pdfs returned an invalid PDF record: {e.error_count()} error(s)") from e

    def replace_pdfs(self, pdfs: Sequence[PdfAttachment]) -> int:
        body = self._request("POST", "/api/pdfs", {"pdfs": [p.to_wire() for p in pdfs]})
        return _synced_count("POST /api/pdfs", body, len(pdfs))

    def status(self) -> DatabaseStatus:
        body = self._request("GET", "/api/init")
        try:
            return DatabaseStatus.model_validate(body)
        except ValidationError as e:
            raise RemoteError("GET /api/init returned an unexpected payload") from e
