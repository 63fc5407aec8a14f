"""Fault-tolerant ledger access: retry of transient failures, each attempt through a shared circuit breaker."""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional

from consent_engine.application.exceptions import LedgerRejectedError, LedgerUnavailableError
from consent_engine.application.ledger import LedgerClient, LedgerEntry, PermanentLedgerError
from consent_engine.scalability.circuit_breaker import CircuitBreaker, CircuitOpenError


class LedgerGateway:
    """
    Wraps a LedgerClient. Transient failures and timeouts are retried up to max_attempts,
    with retry_interval_seconds between attempts. Permanent rejections are not retried.
    An open circuit fails immediately without touching the ledger.
    Everything that escapes is a LedgerUnavailableError.
    """

    def __init__(
        self,
        client: LedgerClient,
        breaker: CircuitBreaker,
        max_attempts: int = 3,
        retry_interval_seconds: float = 0.5,
        metrics: Any = None,
        logger: Optional[logging.Logger] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._client = client
        self._breaker = breaker
        self._max_attempts = max_attempts
        self._retry_interval = retry_interval_seconds
        self._metrics = metrics
        self._logger = logger or logging.getLogger(__name__)
        self._sleep = sleep

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    def worst_case_seconds(self) -> Optional[float]:
        """Upper bound on one append across all attempts; None when calls have no timeout."""
        timeout = self._breaker.call_timeout_seconds
        if timeout is None:
            return None
        return self._max_attempts * (timeout + self._retry_interval)

    async def append(self, consent_id: str, event_type: str, payload: Dict[str, Any]) -> LedgerEntry:
        last_error: Optional[BaseException] = None
        for attempt in range(1, self._max_attempts + 1):
            started = time.perf_counter()
            try:
                entry = await self._breaker.call(self._client.append, consent_id, event_type, payload)
            except CircuitOpenError as e:
                self._logger.warning(
                    "ledger_circuit_open",
                    extra={"consent_id": consent_id, "event_type": event_type, "attempt": attempt},
                )
                raise LedgerUnavailableError(f"Verification ledger unavailable: {e.message}") from e
            except PermanentLedgerError as e:
                self._logger.error(
                    "ledger_entry_rejected",
                    extra={"consent_id": consent_id, "event_type": event_type, "error": e.message},
                )
                raise LedgerRejectedError(f"Verification ledger rejected entry: {e.message}") from e
            except Exception as e:
                last_error = e
                self._logger.warning(
                    "ledger_attempt_failed",
                    extra={
                        "consent_id": consent_id,
                        "event_type": event_type,
                        "attempt": attempt,
                        "error": repr(e),
                    },
                )
                if self._metrics is not None:
                    self._metrics.increment("ledger_attempt_failed", 1, category=event_type)
                if attempt < self._max_attempts:
                    await self._sleep(self._retry_interval)
                continue
            if self._metrics is not None:
                self._metrics.observe_latency(
                    "ledger_append_latency_ms",
                    (time.perf_counter() - started) * 1000,
                    operation=event_type,
                )
            return entry
        raise LedgerUnavailableError(
            f"Verification ledger append failed after {self._max_attempts} attempts: {last_error!r}"
        ) from last_error
