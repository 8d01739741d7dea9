from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, Sequence

from pydantic import ValidationError

from src.core.exports import BackupFormatError, parse_holdings_json, render_holdings_json
from src.core.types import Holding, HoldingInput, LedgerEntry, LedgerEntryInput
from src.ledger.cache import HOLDINGS_KEY, LocalCache
from src.ledger.remote import RemoteError, RemoteStore
from src.utils.time import today

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncStatus:
    # idle | syncing | synced | local-only | offline | warning
    state: str
    message: str = ""

    @property
    def degraded(self) -> bool:
        return self.state in {"offline", "warning"}


@dataclass(frozen=True)
class ImportOutcome:
    success: bool
    message: str
    count: int = 0


def _find(holdings: Iterable[Holding], holding_id: str) -> Optional[Holding]:
    for h in holdings:
        if h.id == holding_id:
            return h
    return None


class HoldingsStorage:
    """
    Offline-first holdings store: a local JSON cache mirrored to the remote API.

    Reconciliation is last-writer-wins with no versioning. On load a non-empty
    remote replaces the local cache; an empty remote is seeded from the local
    cache; an unreachable remote leaves the local cache untouched. Every save
    writes locally first and then pushes the whole collection. Remote failures
    only change `status`.
    """

    def __init__(self, cache: LocalCache, remote: Optional[RemoteStore] = None, *, max_workers: int = 4):
        self.cache = cache
        self.remote = remote
        self._lock = threading.RLock()
        self._status = SyncStatus("idle") if remote is not None else SyncStatus("local-only", "Cloud sync disabled")
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="ledger-sync")
        self._pending: list[Future] = []

    # -- status / background work -------------------------------------------------

    @property
    def status(self) -> SyncStatus:
        with self._lock:
            return self._status

    def _set_status(self, state: str, message: str = "") -> None:
        with self._lock:
            self._status = SyncStatus(state, message)

    def _run_in_background(
        self,
        calls: Sequence[tuple[Callable[..., Any], tuple[Any, ...]]],
        *,
        ok_message: str,
        failed_message: str,
    ) -> None:
        outstanding = len(calls)
        failed = False

        # Status is settled inside the worker so it is final once the future is done.
        def _call(fn: Callable[..., Any], args: tuple[Any, ...]) -> None:
            nonlocal outstanding, failed
            ok = False
            try:
                fn(*args)
                ok = True
            except RemoteError as e:
                logger.warning("Cloud call failed: %s", e)
            except Exception:
                logger.exception("Unexpected error in background cloud call %s", getattr(fn, "__name__", fn))
            finally:
                with self._lock:
                    failed = failed or not ok
                    outstanding -= 1
                    if outstanding == 0:
                        if failed:
                            self._status = SyncStatus("warning", failed_message)
                        else:
                            self._status = SyncStatus("synced", ok_message)

        futures = [self._executor.submit(_call, fn, args) for fn, args in calls]
        with self._lock:
            self._pending.extend(futures)

    def wait_for_background(self, timeout: Optional[float] = None) -> None:
        with self._lock:
            pending, self._pending = self._pending, []
        if pending:
            wait(pending, timeout=timeout)

    def close(self) -> None:
        self.wait_for_background()
        self._executor.shutdown(wait=True)

    # -- local cache --------------------------------------------------------------

    def load_local(self) -> list[Holding]:
        raw = self.cache.get(HOLDINGS_KEY)
        if raw is None:
            return []
        if not isinstance(raw, list):
            logger.error("Local cache %s is not an array; ignoring it", HOLDINGS_KEY)
            return []
        out: list[Holding] = []
        for item in raw:
            try:
                out.append(Holding.model_validate(item))
            except ValidationError as e:
                logger.error("Skipping unreadable cached holding: %s", e)
        return out

    def _write_local(self, holdings: Sequence[Holding]) -> None:
        self.cache.set(HOLDINGS_KEY, [h.to_wire() for h in holdings])

    def _push(self, holdings: Sequence[Holding]) -> bool:
        if self.remote is None:
            return False
        try:
            self.remote.sync_holdings(holdings)
        except RemoteError as e:
            logger.warning("Cloud sync failed (offline?): %s", e)
            self._set_status("warning", "Saved locally; cloud sync failed")
            return False
        self._set_status("synced", f"Synced {len(holdings)} holdings to cloud")
        return True

    # -- collection ---------------------------------------------------------------

    def load_all(self) -> list[Holding]:
        local = self.load_local()
        if self.remote is None:
            return local
        try:
            cloud = self.remote.fetch_holdings()
        except RemoteError as e:
            logger.warning("Cloud unavailable, using local cache: %s", e)
            self._set_status("offline", "Using local data (cloud unavailable)")
            return local

        if cloud:
            self._write_local(cloud)
            self._set_status("synced", f"Loaded {len(cloud)} holdings from cloud")
            logger.info("Synced from cloud: %s holdings", len(cloud))
            return cloud
        if local:
            self._push(local)
            return local
        self._set_status("synced", "No holdings yet")
        return []

    def save_all(self, holdings: Sequence[Holding]) -> None:
        holdings = list(holdings)
        self._write_local(holdings)
        self._push(holdings)

    def append_holdings(self, batch: Sequence[Holding]) -> list[Holding]:
        merged = self.load_all() + list(batch)
        self.save_all(merged)
        return merged

    # -- holdings -----------------------------------------------------------------

    def get_by_id(self, holding_id: str) -> Optional[Holding]:
        return _find(self.load_local(), holding_id)

    def add_holding(self, data: HoldingInput | dict[str, Any]) -> Holding:
        inp = data if isinstance(data, HoldingInput) else HoldingInput.model_validate(data)
        holdings = self.load_all()
        holding = Holding(**inp.model_dump())
        holdings.insert(0, holding)
        self.save_all(holdings)
        return holding

    def update_holding(self, holding_id: str, data: HoldingInput | dict[str, Any]) -> Optional[Holding]:
        inp = data if isinstance(data, HoldingInput) else HoldingInput.model_validate(data)
        holdings = self.load_all()
        for i, h in enumerate(holdings):
            if h.id != holding_id:
                continue
            updated = h.model_copy(update=inp.model_dump())
            updated.touch()
            holdings[i] = updated
            self.save_all(holdings)
            return updated
        logger.info("Holding not found: %s", holding_id)
        return None

    def delete_holding(self, holding_id: str) -> bool:
        return self.delete_holdings([holding_id]) > 0

    def delete_holdings(self, holding_ids: Iterable[str]) -> int:
        """
        Remove holdings from the local cache right away, then tell the remote in
        the background: one delete per id plus a full resync, all in parallel.
        Returns the number of holdings removed locally; the remote outcome only
        shows up in `status`.
        """
        wanted = set(holding_ids)
        holdings = self.load_local()
        remaining = [h for h in holdings if h.id not in wanted]
        removed_ids = list(dict.fromkeys(h.id for h in holdings if h.id in wanted))
        removed = len(holdings) - len(remaining)
        if not removed:
            return 0
        self._write_local(remaining)

        if self.remote is not None:
            self._set_status("syncing", f"Deleting {removed} holdings...")
            calls: list[tuple[Callable[..., Any], tuple[Any, ...]]] = [
                (self.remote.delete_holding, (hid,)) for hid in removed_ids
            ]
            calls.append((self.remote.sync_holdings, (remaining,)))
            self._run_in_background(
                calls,
                ok_message=f"Deleted {removed} holdings",
                failed_message=f"Deleted locally ({removed} holdings)",
            )
        return removed

    def search(self, query: str, limit: Optional[int] = 10) -> list[Holding]:
        q = (query or "").strip().lower()
        if not q:
            return []
        hits = [h for h in self.load_local() if q in h.symbol.lower() or q in (h.company_name or "").lower()]
        return hits[:limit] if limit is not None else hits

    # -- ledger -------------------------------------------------------------------

    def get_ledger_entries(self, holding_id: str) -> list[LedgerEntry]:
        holding = self.get_by_id(holding_id)
        return list(holding.ledger_entries) if holding else []

    def add_ledger_entry(self, holding_id: str, data: LedgerEntryInput | dict[str, Any]) -> Optional[Holding]:
        inp = data if isinstance(data, LedgerEntryInput) else LedgerEntryInput.model_validate(data)
        holdings = self.load_all()
        holding = _find(holdings, holding_id)
        if holding is None:
            logger.info("Holding not found: %s", holding_id)
            return None
        fields = inp.model_dump()
        fields["date"] = inp.date or today()
        holding.ledger_entries.insert(0, LedgerEntry(**fields))
        holding.touch()
        self.save_all(holdings)
        return holding

    def delete_ledger_entry(self, holding_id: str, entry_id: str) -> bool:
        holdings = self.load_all()
        holding = _find(holdings, holding_id)
        if holding is None:
            logger.info("Holding not found: %s", holding_id)
            return False
        kept = [e for e in holding.ledger_entries if e.id != entry_id]
        if len(kept) == len(holding.ledger_entries):
            return False
        holding.ledger_entries = kept
        holding.touch()
        self.save_all(holdings)
        return True

    # -- backup / manual sync -----------------------------------------------------

    def export_json(self) -> str:
        return render_holdings_json(self.load_all())

    def import_json(self, text: str) -> ImportOutcome:
        try:
            imported = parse_holdings_json(text)
        except BackupFormatError as e:
            return ImportOutcome(success=False, message=str(e))
        self.append_holdings(imported)
        return ImportOutcome(
            success=True,
            message=f"Successfully imported {len(imported)} holdings.",
            count=len(imported),
        )

    def push_to_cloud(self) -> int:
        if self.remote is None:
            raise RemoteError("Cloud sync is disabled")
        holdings = self.load_local()
        synced = self.remote.sync_holdings(holdings)
        self._set_status("synced", f"Synced {synced} holdings to cloud")
        return synced

    def pull_from_cloud(self) -> list[Holding]:
        if self.remote is None:
            raise RemoteError("Cloud sync is disabled")
        cloud = self.remote.fetch_holdings()
        if not cloud:
            return []
        self._write_local(cloud)
        self._set_status("synced", f"Loaded {len(cloud)} holdings from cloud")
        return cloud
