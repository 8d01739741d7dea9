from __future__ import annotations

from src.ledger.controller import LedgerController
from src.ledger.storage import HoldingsStorage


def test_card_with_original_position_and_ledger(cache):
    storage = HoldingsStorage(cache)
    h = storage.add_holding(
        {"symbol": "RELI", "company_name": "Reliance", "shares_count": 100, "purchase_price": 2500, "notes": "core"}
    )
    storage.add_ledger_entry(h.id, {"entry_type": "sell", "date": "2024-01-05", "shares": 10, "price_per_share": 2700})
    storage.add_ledger_entry(h.id, {"entry_type": "note", "date": "2024-02-01", "description": "AGM"})

    ctl = LedgerController(storage)
    [card] = ctl.holding_cards()
    assert card.original_line == "Shares: 100 @ ₹2,500"
    assert card.original_investment == "₹250,000"
    assert card.details == []
    assert card.current_shares == "90"
    assert card.realized_profit == "+₹2,000"
    assert card.profit_positive is True
    assert card.notes == "core"
    assert card.selected is None
    assert card.ledger_toggle_label == "show"

    note, sell = card.ledger
    assert note.entry_type == "note"
    assert note.details == ""
    assert note.description == "AGM"
    assert sell.date == "Jan 5, 2024"
    assert sell.details == "10 shares @ ₹2,700"


def test_card_with_partial_details_and_no_ledger(cache):
    storage = HoldingsStorage(cache)
    storage.add_holding({"symbol": "PART", "shares_count": 12.5, "date_acquired": "2023-07-04"})

    [card] = LedgerController(storage, currency_symbol="$").holding_cards()
    assert card.original_line is None
    assert card.details == [("shares", "12.5"), ("acquired", "Jul 4, 2023")]
    assert card.current_shares is None
    assert card.realized_profit is None
    assert card.ledger_toggle_label == "empty"


def test_loss_is_rendered_negative(cache):
    storage = HoldingsStorage(cache)
    h = storage.add_holding({"symbol": "LOSS", "shares_count": 10, "purchase_price": 50})
    storage.add_ledger_entry(h.id, {"entry_type": "sell", "date": "2024-01-01", "shares": 10, "price_per_share": 40})
    [card] = LedgerController(storage).holding_cards()
    assert card.realized_profit == "-₹100"
    assert card.profit_positive is False


def test_select_mode_and_bulk_delete(cache, fake_remote):
    storage = HoldingsStorage(cache, fake_remote)
    ids = [storage.add_holding({"symbol": s}).id for s in ("A", "B", "C")]
    ctl = LedgerController(storage)

    assert ctl.delete_selected() == 0
    assert ctl.toggle_select_mode() is True
    assert ctl.delete_button_label() == "delete selected"
    assert ctl.toggle_selection(ids[0]) is True
    assert ctl.toggle_selection(ids[1]) is True
    assert ctl.toggle_selection(ids[1]) is False
    assert ctl.delete_button_label() == "delete selected (1)"
    assert [c.selected for c in ctl.holding_cards()].count(True) == 1

    assert ctl.select_all() == 3
    ctl.deselect_all()
    assert ctl.selected == set()

    ctl.toggle_selection(ids[0])
    ctl.toggle_selection(ids[2])
    assert ctl.delete_selected() == 2
    assert ctl.select_mode is False
    assert [h.id for h in storage.load_local()] == [ids[1]]
    storage.close()
    assert set(fake_remote.holdings) == {ids[1]}


def test_leaving_select_mode_clears_selection(cache):
    storage = HoldingsStorage(cache)
    h = storage.add_holding({"symbol": "X"})
    ctl = LedgerController(storage)
    ctl.toggle_select_mode()
    ctl.toggle_selection(h.id)
    assert ctl.toggle_select_mode() is False
    assert ctl.selected == set()


def test_search_is_capped(cache):
    storage = HoldingsStorage(cache)
    for i in range(15):
        storage.add_holding({"symbol": f"S{i}"})
    assert len(LedgerController(storage).search("s")) == 10
