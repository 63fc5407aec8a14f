# consent_engine/api/routers/health.py

from typing import Any

from fastapi import APIRouter, Request
from sqlalchemy import text

from consent_engine.api import dependencies
from consent_engine.config.settings import get_settings
from consent_engine.infrastructure.database.session import get_engine
from consent_engine.scalability.health_monitor import HealthMonitor

router = APIRouter()


async def _db_health() -> dict[str, Any]:
    async with get_engine().connect() as conn:
        await conn.execute(text("SELECT 1"))
    return {"status": "ok"}


async def _redis_health() -> dict[str, Any]:
    await dependencies.get_redis_client().ping()
    return {"status": "ok"}


async def _rabbitmq_health() -> dict[str, Any]:
    publisher = dependencies.get_publisher()
    if publisher is None:
        return {"status": "disabled"}
    if not await publisher.ping():
        raise ConnectionError("RabbitMQ connection is closed")
    return {"status": "ok"}


def _circuit_breaker_states() -> dict[str, str]:
    breaker = dependencies.get_ledger_gateway().breaker
    return {breaker.name: breaker.state.value}


def build_health_monitor() -> HealthMonitor:
    """Database, Redis and RabbitMQ checks only apply when storage lives there."""
    if get_settings().storage_backend == "memory":
        return HealthMonitor(circuit_breaker_states=_circuit_breaker_states)
    return HealthMonitor(
        db_health=_db_health,
        redis_health=_redis_health,
        rabbitmq_health=_rabbitmq_health,
        circuit_breaker_states=_circuit_breaker_states,
    )


@router.get("/health")
async def health(request: Request):
    """Liveness plus aggregated component health. Always 200; status is ok or degraded."""
    settings = get_settings()
    report = await build_health_monitor().system_health()
    return {
        **report,
        "correlation_id": request.state.correlation_id,
        "environment": settings.environment,
        "version": settings.version,
    }


@router.get("/metrics")
async def metrics():
    """In-process counters and latency summaries."""
    if not get_settings().enable_metrics:
        return {}
    return dependencies.get_metrics().export_metrics()
