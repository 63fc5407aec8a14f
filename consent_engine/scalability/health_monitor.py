"""Aggregate system health: DB, Redis, RabbitMQ, ledger circuit breaker state. Integrates with observability."""

from typing import Any, Awaitable, Callable


class HealthMonitor:
    """
    Aggregates health checks. All backends injected; no global state.
    Returns dict with status per component and overall. An open ledger circuit
    marks the service degraded, since consent writes will fail fast.
    """

    def __init__(
        self,
        db_health: Callable[[], Awaitable[dict[str, Any]]] | None = None,
        redis_health: Callable[[], Awaitable[dict[str, Any]]] | None = None,
        rabbitmq_health: Callable[[], Awaitable[dict[str, Any]]] | None = None,
        circuit_breaker_states: Callable[[], dict[str, str]] | None = None,
    ) -> None:
        self._checks = {
            "db": db_health,
            "redis": redis_health,
            "rabbitmq": rabbitmq_health,
        }
        self._circuit_states = circuit_breaker_states

    async def system_health(self) -> dict[str, Any]:
        """Return aggregated health: db, redis, rabbitmq, circuit_breaker_states, status."""
        out: dict[str, Any] = {
            "db": {"status": "unknown"},
            "redis": {"status": "unknown"},
            "rabbitmq": {"status": "unknown"},
            "circuit_breaker_states": {},
            "status": "ok",
        }
        for name, check in self._checks.items():
            if check is None:
                continue
            try:
                out[name] = await check()
            except Exception as e:
                out[name] = {"status": "error", "error": str(e)}
                out["status"] = "degraded"
        if self._circuit_states:
            try:
                out["circuit_breaker_states"] = self._circuit_states()
            except Exception:
                out["circuit_breaker_states"] = {}
            if any(state != "closed" for state in out["circuit_breaker_states"].values()):
                out["status"] = "degraded"
        return out
