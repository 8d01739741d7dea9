from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from src.utils.money import to_float


@dataclass(frozen=True)
class HoldingSummary:
    current_shares: float
    total_realized_profit: float
    original_investment: float
    bought_shares: float
    sold_shares: float
    has_ledger_entries: bool


def _get(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def _entry_type(entry: Any) -> str:
    return str(_get(entry, "entry_type") or "").strip().lower()


def calculate_holding_summary(holding: Any) -> HoldingSummary:
    """
    Derive current shares and realized profit from the original purchase plus
    the ledger.

    Realized profit on a sell is measured against the holding's original
    purchase price, not a running average cost. Accepts `Holding` models or
    plain dicts (e.g. records read from a backup file); malformed numbers count
    as 0 and never raise.
    """
    original_shares = to_float(_get(holding, "shares_count"))
    original_price = to_float(_get(holding, "purchase_price"))

    entries: Iterable[Any] = _get(holding, "ledger_entries") or []
    if not isinstance(entries, (list, tuple)):
        entries = []
    bought = 0.0
    sold = 0.0
    realized = 0.0
    for entry in entries:
        kind = _entry_type(entry)
        if kind not in ("buy", "sell"):
            continue
        shares = to_float(_get(entry, "shares"))
        if shares <= 0:
            continue
        if kind == "buy":
            bought += shares
        else:
            price = to_float(_get(entry, "price_per_share"))
            sold += shares
            realized += shares * price - shares * original_price

    return HoldingSummary(
        current_shares=original_shares + bought - sold,
        total_realized_profit=realized,
        original_investment=original_shares * original_price,
        bought_shares=bought,
        sold_shares=sold,
        has_ledger_entries=(bought > 0 or sold > 0),
    )
