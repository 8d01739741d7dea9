from __future__ import annotations

from pathlib import Path

from src.ledger.config import LedgerConfig, load_ledger_config

_ENV = (
    "LEDGER_API_URL",
    "LEDGER_CACHE_DIR",
    "LEDGER_REMOTE_ENABLED",
    "LEDGER_REQUEST_TIMEOUT",
    "LEDGER_CURRENCY_SYMBOL",
    "LEDGER_ACTOR",
    "LEDGER_PASSWORD",
)


def _clean_env(monkeypatch, home: Path) -> None:
    for name in _ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HOME", str(home))


def test_defaults_without_file(tmp_path: Path, monkeypatch):
    _clean_env(monkeypatch, tmp_path / "home")
    monkeypatch.chdir(tmp_path)
    cfg, path = load_ledger_config()
    assert path is None
    assert cfg == LedgerConfig()
    assert cfg.request_timeout_s is None
    assert cfg.currency_symbol == "₹"


def test_yaml_file_then_env_overrides(tmp_path: Path, monkeypatch):
    _clean_env(monkeypatch, tmp_path / "home")
    monkeypatch.chdir(tmp_path)
    (tmp_path / "ledger.yaml").write_text(
        "ledger:\n  api_base_url: http://nas.local:9000\n  cache_dir: /tmp/ledger-cache\n  currency_symbol: $\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("LEDGER_REMOTE_ENABLED", "0")
    monkeypatch.setenv("LEDGER_REQUEST_TIMEOUT", "2.5")

    cfg, path = load_ledger_config()
    assert path == "ledger.yaml"
    assert cfg.api_base_url == "http://nas.local:9000"
    assert cfg.currency_symbol == "$"
    assert cfg.remote_enabled is False
    assert cfg.request_timeout_s == 2.5


def test_home_config_is_used_when_cwd_has_none(tmp_path: Path, monkeypatch):
    home = tmp_path / "home"
    _clean_env(monkeypatch, home)
    (home / ".silentledger").mkdir(parents=True)
    (home / ".silentledger" / "ledger.yaml").write_text("cache_dir: elsewhere\n", encoding="utf-8")
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.chdir(work)

    cfg, path = load_ledger_config()
    assert path is not None and path.endswith("ledger.yaml")
    assert cfg.cache_dir == "elsewhere"
