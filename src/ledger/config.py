from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel


class LedgerConfig(BaseModel):
    api_base_url: str = "http://127.0.0.1:8000"
    cache_dir: str = "data/cache"
    remote_enabled: bool = True
    # None means no timeout: a stalled server only blocks the waiting call.
    request_timeout_s: Optional[float] = None
    currency_symbol: str = "₹"
    actor: Optional[str] = None
    password: Optional[str] = None


def _candidate_paths() -> list[Path]:
    paths = [Path("ledger.yaml")]
    home = Path(os.path.expanduser("~"))
    paths.append(home / ".silentledger" / "ledger.yaml")
    return paths


def _env_bool(raw: str) -> bool:
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _apply_env(cfg: LedgerConfig) -> LedgerConfig:
    updates: dict[str, object] = {}
    if os.environ.get("LEDGER_API_URL", "").strip():
        updates["api_base_url"] = os.environ["LEDGER_API_URL"].strip()
    if os.environ.get("LEDGER_CACHE_DIR", "").strip():
        updates["cache_dir"] = os.environ["LEDGER_CACHE_DIR"].strip()
    if os.environ.get("LEDGER_REMOTE_ENABLED", "").strip():
        updates["remote_enabled"] = _env_bool(os.environ["LEDGER_REMOTE_ENABLED"])
    if os.environ.get("LEDGER_REQUEST_TIMEOUT", "").strip():
        updates["request_timeout_s"] = float(os.environ["LEDGER_REQUEST_TIMEOUT"])
    if os.environ.get("LEDGER_CURRENCY_SYMBOL", "").strip():
        updates["currency_symbol"] = os.environ["LEDGER_CURRENCY_SYMBOL"].strip()
    if os.environ.get("LEDGER_ACTOR", "").strip():
        updates["actor"] = os.environ["LEDGER_ACTOR"].strip()
    if os.environ.get("LEDGER_PASSWORD", "").strip():
        updates["password"] = os.environ["LEDGER_PASSWORD"]
    if not updates:
        return cfg
    return cfg.model_copy(update=updates)


def load_ledger_config() -> tuple[LedgerConfig, Optional[str]]:
    for p in _candidate_paths():
        if p.exists():
            data = yaml.safe_load(p.read_text()) or {}
            cfg = LedgerConfig.model_validate(data.get("ledger") or data)
            return _apply_env(cfg), str(p)
    return _apply_env(LedgerConfig()), None
