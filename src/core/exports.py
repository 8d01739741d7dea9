from __future__ import annotations

import datetime as dt
import json
from typing import Any, Iterable

from pydantic import ValidationError

from src.core.types import Holding

BACKUP_PREFIX = "silent-ledger-backup"


class BackupFormatError(ValueError):
    pass


def backup_filename(today: dt.date) -> str:
    return f"{BACKUP_PREFIX}-{today.isoformat()}.json"


def render_holdings_json(holdings: Iterable[Holding]) -> str:
    return json.dumps([h.to_wire() for h in holdings], indent=2, ensure_ascii=False)


def parse_holdings_json(text: str) -> list[Holding]:
    try:
        payload: Any = json.loads(text)
    except json.JSONDecodeError as e:
        raise BackupFormatError(f"Error parsing JSON data: {e.msg} (line {e.lineno})") from e
    if not isinstance(payload, list):
        raise BackupFormatError("Invalid data format. Expected an array of holdings.")
    out: list[Holding] = []
    for i, item in enumerate(payload, start=1):
        try:
            out.append(Holding.model_validate(item))
        except ValidationError as e:
            first = e.errors()[0] if e.errors() else {}
            loc = ".".join(str(p) for p in first.get("loc", ()))
            raise BackupFormatError(f"Invalid holding #{i}: {loc} {first.get('msg', str(e))}".strip()) from e
    return out
