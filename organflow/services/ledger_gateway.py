"""
Ledger collaborator: mirrors lifecycle events to an external ledger relay.

The relay is optional. When it is not configured, or a submission fails, the
lifecycle manager falls back to synthetic_tx_hash() and keeps going in
degraded mode.
"""
import hashlib
import json
import logging
from typing import Optional

import requests

from organflow.core.config import Settings
from organflow.core.exceptions import LedgerUnavailableError

logger = logging.getLogger(__name__)

GENESIS_HASH = "0" * 64
SYNTHETIC_PREFIX = "mock_"


def synthetic_tx_hash(previous_hash: Optional[str], event_type: str, organ_id: int, details: str,
                      timestamp: str) -> str:
    """Build a local transaction reference chained to the previous ledger entry."""
    previous = previous_hash or GENESIS_HASH
    if previous.startswith(SYNTHETIC_PREFIX):
        previous = previous[len(SYNTHETIC_PREFIX):]
    content = json.dumps(
        {"previous": previous, "type": event_type, "organId": organ_id,
         "details": details, "timestamp": timestamp},
        sort_keys=True,
    )
    return SYNTHETIC_PREFIX + hashlib.sha256(content.encode("utf-8")).hexdigest()


def is_synthetic(tx_hash: str) -> bool:
    return tx_hash.startswith(SYNTHETIC_PREFIX)


class LedgerGateway:
    """Submit one lifecycle event and return the ledger's transaction reference."""

    def submit(self, event_type: str, organ_id: int, details: str) -> str:
        raise NotImplementedError

    def close(self) -> None:
        pass


class HttpLedgerGateway(LedgerGateway):
    """Posts events as JSON to a ledger relay service."""

    def __init__(self, base_url: str, api_key: Optional[str] = None, timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        if api_key:
            self.session.headers.update({"Authorization": f"Bearer {api_key}"})

    def submit(self, event_type: str, organ_id: int, details: str) -> str:
        payload = {"type": event_type, "organId": organ_id, "details": details}
        try:
            response = self.session.post(f"{self.base_url}/transactions", json=payload, timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except requests.RequestException as e:
            raise LedgerUnavailableError(f"Ledger relay request failed: {e}") from e
        except ValueError as e:
            raise LedgerUnavailableError(f"Ledger relay returned invalid JSON: {e}") from e

        tx_hash = body.get("txHash") if isinstance(body, dict) else None
        if not tx_hash or not isinstance(tx_hash, str):
            raise LedgerUnavailableError(f"Ledger relay reply has no txHash: {body!r}")

        logger.debug(f"Ledger relay accepted {event_type} for organ {organ_id}: {tx_hash}")
        return tx_hash

    def close(self) -> None:
        self.session.close()


def build_ledger_gateway(settings: Settings) -> Optional[LedgerGateway]:
    if not settings.LEDGER_API_URL:
        logger.info("No ledger relay configured, using synthetic transaction references")
        return None
    logger.info(f"Mirroring lifecycle events to ledger relay at {settings.LEDGER_API_URL}")
    return HttpLedgerGateway(
        settings.LEDGER_API_URL,
        api_key=settings.ledger_api_key,
        timeout=settings.LEDGER_TIMEOUT_SECONDS,
    )
