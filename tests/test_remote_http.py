from __future__ import annotations

import httpx
import pytest

from src.core.types import Holding, PdfAttachment
from src.ledger.cache import LocalCache
from src.ledger.remote import HttpRemoteStore, RemoteError
from src.ledger.storage import HoldingsStorage


@pytest.fixture()
def remote(api_client) -> HttpRemoteStore:
    return HttpRemoteStore("http://testserver", client=api_client)


def test_storage_against_real_api(cache, remote):
    storage = HoldingsStorage(cache, remote)
    h = storage.add_holding({"symbol": "E2E", "shares_count": 4, "purchase_price": 2.5})
    storage.add_ledger_entry(h.id, {"entry_type": "buy", "date": "2024-02-02", "shares": 1, "price_per_share": 3})

    [cloud] = remote.fetch_holdings()
    assert cloud.id == h.id
    assert cloud.shares_count == 4
    assert [e.entry_type for e in cloud.ledger_entries] == ["buy"]

    # A second device with an empty cache picks up the cloud copy.
    other = HoldingsStorage(LocalCache(cache.cache_dir.parent / "other"), remote)
    assert [x.id for x in other.load_all()] == [h.id]

    assert storage.delete_holding(h.id) is True
    storage.wait_for_background()
    assert remote.fetch_holdings() == []
    assert storage.status.state == "synced"
    storage.close()


def test_status_reports_counts(remote):
    remote.sync_holdings([Holding(symbol="ONE"), Holding(symbol="TWO")])
    st = remote.status()
    assert st.connected
    assert st.holdings_count == 2
    assert st.entries_count == 0


def test_pdf_round_trip_uses_camel_case(remote, api_client):
    pdf = PdfAttachment(name="note.pdf", size="10 B", size_bytes=10, data="data:application/pdf;base64,JVBERi0=")
    assert remote.replace_pdfs([pdf]) == 1

    raw = api_client.get("/api/pdfs").json()
    assert raw[0]["sizeBytes"] == 10
    assert "uploadedAt" in raw[0]

    [back] = remote.fetch_pdfs()
    assert back.id == pdf.id
    assert back.size_bytes == 10


def test_http_errors_become_remote_errors(remote):
    big = PdfAttachment(name="big.pdf", data="x" * (1024 * 1024 + 1))
    with pytest.raises(RemoteError, match="too large"):
        remote.replace_pdfs([big])


def test_transport_failure_becomes_remote_error():
    def _refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = httpx.Client(base_url="http://ledger.invalid", transport=httpx.MockTransport(_refuse))
    store = HttpRemoteStore("http://ledger.invalid", client=client)
    with pytest.raises(RemoteError, match="ConnectError"):
        store.fetch_holdings()


def test_non_array_payload_is_rejected():
    client = httpx.Client(
        base_url="http://ledger.invalid",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"holdings": []})),
    )
    with pytest.raises(RemoteError, match="did not return an array"):
        HttpRemoteStore("http://ledger.invalid", client=client).fetch_holdings()


def _store_answering(body) -> HttpRemoteStore:
    client = httpx.Client(
        base_url="http://ledger.invalid",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json=body)),
    )
    return HttpRemoteStore("http://ledger.invalid", client=client)


def test_malformed_sync_reply_is_a_remote_error():
    with pytest.raises(RemoteError, match="non-integer synced count"):
        _store_answering({"synced": "n/a"}).sync_holdings([Holding(symbol="A")])
    with pytest.raises(RemoteError, match="unexpected payload"):
        _store_answering(["not", "a", "dict"]).replace_pdfs([])
    assert _store_answering({"success": True}).sync_holdings([Holding(symbol="A")]) == 1


def test_malformed_sync_reply_only_degrades_status(cache):
    storage = HoldingsStorage(cache, _store_answering({"synced": "n/a"}))
    storage.save_all([Holding(symbol="A")])
    assert [h.symbol for h in storage.load_local()] == ["A"]
    assert storage.status.state == "warning"
    storage.close()
