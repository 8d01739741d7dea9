from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from src.core.summary import calculate_holding_summary
from src.core.types import Holding, LedgerEntry
from src.ledger.storage import HoldingsStorage
from src.utils.money import format_amount, format_number
from src.utils.time import format_display_date

SEARCH_LIMIT = 10


@dataclass(frozen=True)
class LedgerLine:
    id: str
    entry_type: str
    date: str
    details: str
    description: str


@dataclass(frozen=True)
class HoldingCard:
    id: str
    symbol: str
    company_name: str
    # "Shares: 100 @ ₹10" when both original shares and price are known.
    original_line: Optional[str]
    original_investment: Optional[str]
    details: list[tuple[str, str]]
    notes: str
    current_shares: Optional[str]
    realized_profit: Optional[str]
    profit_positive: bool
    ledger: list[LedgerLine] = field(default_factory=list)
    selected: Optional[bool] = None

    @property
    def ledger_toggle_label(self) -> str:
        return "show" if self.ledger else "empty"


class LedgerController:
    """
    Owns the view state the browser kept in globals: select mode and the set
    of selected holding ids. Renders holdings into card view-models.
    """

    def __init__(self, storage: HoldingsStorage, *, currency_symbol: str = "₹"):
        self.storage = storage
        self.currency_symbol = currency_symbol
        self.select_mode = False
        self.selected: set[str] = set()

    # -- rendering ------------------------------------------------------------------

    def _ledger_line(self, entry: LedgerEntry) -> LedgerLine:
        parts: list[str] = []
        if entry.shares:
            parts.append(f"{format_number(entry.shares)} shares")
        if entry.price_per_share:
            price = format_amount(entry.price_per_share, self.currency_symbol)
            parts.append(f"@ {price}" if parts else price)
        return LedgerLine(
            id=entry.id,
            entry_type=entry.entry_type,
            date=format_display_date(entry.date),
            details=" ".join(parts),
            description=entry.description,
        )

    def card_for(self, holding: Holding) -> HoldingCard:
        summary = calculate_holding_summary(holding)
        sym = self.currency_symbol

        original_line = None
        original_investment = None
        details: list[tuple[str, str]] = []
        if holding.shares_count and holding.purchase_price:
            original_line = (
                f"Shares: {format_number(holding.shares_count)} @ {format_amount(holding.purchase_price, sym)}"
            )
            original_investment = format_amount(summary.original_investment, sym)
        else:
            if holding.shares_count:
                details.append(("shares", format_number(holding.shares_count)))
            if holding.date_acquired:
                details.append(("acquired", format_display_date(holding.date_acquired)))
            if holding.purchase_price:
                details.append(("price/share", format_amount(holding.purchase_price, sym)))

        current_shares = None
        realized = None
        if summary.has_ledger_entries:
            current_shares = format_number(summary.current_shares)
            realized = format_amount(summary.total_realized_profit, sym, signed=True)

        return HoldingCard(
            id=holding.id,
            symbol=holding.symbol,
            company_name=holding.company_name,
            original_line=original_line,
            original_investment=original_investment,
            details=details,
            notes=holding.notes,
            current_shares=current_shares,
            realized_profit=realized,
            profit_positive=summary.total_realized_profit >= 0,
            ledger=[self._ledger_line(e) for e in holding.ledger_entries],
            selected=(holding.id in self.selected) if self.select_mode else None,
        )

    def holding_cards(self) -> list[HoldingCard]:
        return [self.card_for(h) for h in self.storage.load_local()]

    def refresh(self) -> list[HoldingCard]:
        """Reconcile with the remote first, then render."""
        self.storage.load_all()
        return self.holding_cards()

    # -- select mode ----------------------------------------------------------------

    def toggle_select_mode(self) -> bool:
        self.select_mode = not self.select_mode
        self.selected.clear()
        return self.select_mode

    def toggle_selection(self, holding_id: str) -> bool:
        if holding_id in self.selected:
            self.selected.discard(holding_id)
            return False
        self.selected.add(holding_id)
        return True

    def select_all(self) -> int:
        self.selected = {h.id for h in self.storage.load_local()}
        return len(self.selected)

    def deselect_all(self) -> None:
        self.selected.clear()

    def delete_button_label(self) -> str:
        n = len(self.selected)
        return f"delete selected ({n})" if n else "delete selected"

    def delete_selected(self) -> int:
        if not self.selected:
            return 0
        removed = self.storage.delete_holdings(sorted(self.selected))
        self.selected.clear()
        self.select_mode = False
        return removed

    # -- search ---------------------------------------------------------------------

    def search(self, query: str) -> list[Holding]:
        return self.storage.search(query, limit=SEARCH_LIMIT)
