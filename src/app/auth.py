from __future__ import annotations

import os
import secrets
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials


security = HTTPBasic(auto_error=False)


def _expected_password() -> Optional[str]:
    pw = os.environ.get("APP_PASSWORD")
    if pw is not None and pw.strip() == "":
        return None
    return pw


def auth_enabled() -> bool:
    return _expected_password() is not None


def actor_from_headers(request: Optional[Request]) -> str:
    default = os.environ.get("APP_ACTOR_DEFAULT", "local")
    if request is None:
        return default
    return (request.headers.get("X-Actor") or "").strip() or default


def require_actor(request: Request, credentials: Optional[HTTPBasicCredentials] = Depends(security)) -> str:
    """
    Resolve who is calling. Without `APP_PASSWORD` every request is accepted and
    attributed to `X-Actor` (or `APP_ACTOR_DEFAULT`); with it, Basic auth is required.
    """
    expected = _expected_password()
    if expected is None:
        return actor_from_headers(request)

    if credentials is None or not secrets.compare_digest(credentials.password.encode(), expected.encode()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Basic"},
        )
    return credentials.username or actor_from_headers(request)
