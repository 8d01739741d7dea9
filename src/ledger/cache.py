from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

HOLDINGS_KEY = "silentLedger_holdings"
PDFS_KEY = "silent_ledger_pdfs"


class LocalCache:
    """
    Key -> JSON document store on local disk, one file per key.

    Writes go through a temp file and an atomic rename, so a crash mid-write
    leaves the previous document in place.
    """

    def __init__(self, cache_dir: Path):
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        safe = "".join(ch for ch in key if ch.isalnum() or ch in {"_", "-", "."})
        return self.cache_dir / f"{safe}.json"

    def get(self, key: str) -> Any | None:
        p = self._path(key)
        if not p.exists():
            return None
        try:
            return json.loads(p.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error("Error loading %s from local cache: %s", key, e)
            return None

    def set(self, key: str, value: Any) -> None:
        p = self._path(key)
        fd, tmp = tempfile.mkstemp(prefix=p.stem + ".", suffix=".tmp", dir=str(self.cache_dir))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(value, f, ensure_ascii=False)
            os.replace(tmp, p)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
