"""Tests for the ledger relay client and the manager's synthetic-reference fallback."""
import threading

import pytest
import requests

from organflow.core.config import Settings
from organflow.core.exceptions import LedgerUnavailableError
from organflow.models.organ import OrganStatus
from organflow.services.ledger_gateway import (
    HttpLedgerGateway,
    LedgerGateway,
    build_ledger_gateway,
    is_synthetic,
    synthetic_tx_hash,
)
from organflow.services.lifecycle_manager import OrganLifecycleManager


class FakeResponse:
    def __init__(self, status_code=200, body=None, invalid_json=False):
        self.status_code = status_code
        self._body = body
        self._invalid_json = invalid_json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")

    def json(self):
        if self._invalid_json:
            raise ValueError("Expecting value")
        return self._body


class FakeSession:
    def __init__(self, response=None, error=None):
        self.headers = {}
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, json=None, timeout=None):
        self.calls.append({"url": url, "json": json, "timeout": timeout})
        if self.error:
            raise self.error
        return self.response

    def close(self):
        pass


class FlakyGateway(LedgerGateway):
    """Relay that is down for the first `failures` submissions."""

    def __init__(self, failures):
        self.failures = failures
        self.submitted = []

    def submit(self, event_type, organ_id, details):
        self.submitted.append((event_type, organ_id))
        if len(self.submitted) <= self.failures:
            raise LedgerUnavailableError("relay offline")
        return f"0xrelay{len(self.submitted)}"


def test_http_gateway_returns_tx_hash():
    session = FakeSession(FakeResponse(body={"txHash": "0xabc"}))
    gateway = HttpLedgerGateway("https://relay.example/", api_key="secret", timeout=3, session=session)

    assert gateway.submit("OrganRegistered", 7, "Heart registered") == "0xabc"
    call = session.calls[0]
    assert call["url"] == "https://relay.example/transactions"
    assert call["json"] == {"type": "OrganRegistered", "organId": 7, "details": "Heart registered"}
    assert call["timeout"] == 3
    assert session.headers["Authorization"] == "Bearer secret"


@pytest.mark.parametrize("session", [
    FakeSession(error=requests.ConnectionError("refused")),
    FakeSession(error=requests.Timeout("slow")),
    FakeSession(FakeResponse(status_code=502)),
    FakeSession(FakeResponse(invalid_json=True)),
    FakeSession(FakeResponse(body={"status": "ok"})),
])
def test_http_gateway_failures_raise_unavailable(session):
    gateway = HttpLedgerGateway("https://relay.example", session=session)
    with pytest.raises(LedgerUnavailableError):
        gateway.submit("OrganTransferred", 1, "moved")


def test_build_ledger_gateway():
    assert build_ledger_gateway(Settings(LEDGER_API_URL="")) is None

    gateway = build_ledger_gateway(Settings(LEDGER_API_URL="https://relay.example", LEDGER_API_KEY="XXXXXXXX"))
    try:
        assert isinstance(gateway, HttpLedgerGateway)
        assert "Authorization" not in gateway.session.headers
    finally:
        gateway.close()


def test_synthetic_hash_is_chained():
    first = synthetic_tx_hash(None, "OrganRegistered", 0, "x", "2026-01-01T00:00:00+00:00")
    second = synthetic_tx_hash(first, "OrganRegistered", 0, "x", "2026-01-01T00:00:00+00:00")
    assert is_synthetic(first) and is_synthetic(second)
    assert first != second
    assert first == synthetic_tx_hash(None, "OrganRegistered", 0, "x", "2026-01-01T00:00:00+00:00")


class BlockingGateway(LedgerGateway):
    """Relay that does not answer until released."""

    def __init__(self):
        self.entered = threading.Event()
        self.release = threading.Event()
        self.answered = threading.Event()

    def submit(self, event_type, organ_id, details):
        self.entered.set()
        self.release.wait(timeout=5)
        self.answered.set()
        return "0xslow"


def test_manager_uses_relay_reference(store):
    gateway = FlakyGateway(failures=0)
    manager = OrganLifecycleManager(store=store, ledger_gateway=gateway)
    organ = manager.register("D1", "Heart", "A+")
    manager.wait_for_relay(timeout=5)

    assert manager.list_ledger()[0].tx_hash == "0xrelay1"
    assert gateway.submitted == [("OrganRegistered", organ.id)]
    manager.close()
    assert store.saved.ledger[0].tx_hash == "0xrelay1"


def test_manager_degrades_when_relay_down(store):
    gateway = FlakyGateway(failures=1)
    manager = OrganLifecycleManager(store=store, ledger_gateway=gateway)
    organ = manager.register("D1", "Heart", "A+")
    manager.transfer(organ.id, "H1")
    manager.wait_for_relay(timeout=5)

    registered, transferred = reversed(manager.list_ledger())
    assert is_synthetic(registered.tx_hash)
    assert transferred.tx_hash == "0xrelay2"
    assert manager.get_organ(organ.id).hospital == "H1"
    manager.close()


def test_slow_relay_does_not_block_commands_or_queries(store):
    gateway = BlockingGateway()
    manager = OrganLifecycleManager(store=store, ledger_gateway=gateway)
    try:
        organ = manager.register("D1", "Heart", "A+")
        assert gateway.entered.wait(timeout=2)

        # The relay is still holding the first submission
        assert manager.get_organ(organ.id).status == OrganStatus.DONATED
        manager.transfer(organ.id, "H1")
        assert [o.hospital for o in manager.list_organs()] == ["H1"]
        assert not gateway.answered.is_set()
        assert all(is_synthetic(e.tx_hash) for e in manager.list_ledger())
    finally:
        gateway.release.set()

    manager.wait_for_relay(timeout=5)
    assert [e.tx_hash for e in manager.list_ledger()] == ["0xslow", "0xslow"]
    manager.close()
