"""
HTTP client for an external verification ledger service.

The service accepts POST /entries with {consent_id, event_type, payload} and
answers with the stored entry. 5xx responses, timeouts and connection failures
are transient; any other 4xx is a rejection of the entry itself.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from consent_engine.application.ledger import (
    LedgerEntry,
    PermanentLedgerError,
    TransientLedgerError,
)

logger = logging.getLogger(__name__)

# Rate limiting and request timeouts on the ledger side are worth retrying.
RETRYABLE_CLIENT_STATUSES = frozenset({408, 429})


class HttpLedgerClient:
    """Implements LedgerClient over httpx. No retries here; LedgerGateway owns retry and breaking."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers=headers,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def append(self, consent_id: str, event_type: str, payload: Dict[str, Any]) -> LedgerEntry:
        try:
            response = await self._client.post(
                "/entries",
                json={"consent_id": consent_id, "event_type": event_type, "payload": payload},
            )
        except httpx.TimeoutException as e:
            raise TransientLedgerError(f"Ledger request timed out: {e}") from e
        except httpx.TransportError as e:
            raise TransientLedgerError(f"Ledger unreachable: {e}") from e

        if response.status_code >= 500 or response.status_code in RETRYABLE_CLIENT_STATUSES:
            raise TransientLedgerError(f"Ledger returned {response.status_code}")
        if response.status_code >= 400:
            logger.error(
                "ledger_http_rejected",
                extra={"consent_id": consent_id, "status_code": response.status_code, "body": response.text[:500]},
            )
            raise PermanentLedgerError(f"Ledger returned {response.status_code}: {response.text[:200]}")

        try:
            body = response.json()
            recorded_at = datetime.fromisoformat(body["recorded_at"])
            if recorded_at.tzinfo is None:
                recorded_at = recorded_at.replace(tzinfo=timezone.utc)
            return LedgerEntry(
                entry_id=str(body["entry_id"]),
                consent_id=consent_id,
                event_type=event_type,
                payload=payload,
                entry_hash=body["entry_hash"],
                prev_hash=body.get("prev_hash"),
                recorded_at=recorded_at,
            )
        except (ValueError, KeyError, TypeError) as e:
            # The entry may or may not be stored; treat as transient so the caller retries.
            raise TransientLedgerError(f"Malformed ledger response: {e}") from e
