"""API middleware: correlation ID, bearer authentication with failed-attempt throttling, per-principal rate limit, audit trigger."""

import json
import logging
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from consent_engine.api import dependencies
from consent_engine.core.context import actor_id_ctx, correlation_id_ctx
from consent_engine.security.exceptions import AuthenticationError, SecurityConfigurationError

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"
AUTHORIZATION_HEADER = "Authorization"
PUBLIC_PATHS = frozenset({"/health", "/metrics", "/docs", "/redoc", "/openapi.json"})


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Generate or preserve correlation ID; attach to request.state, response header, and logging context."""

    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        correlation_id_ctx.set(correlation_id)

        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response


def _client_address(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _too_many_requests(retry_after_seconds: int) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={"detail": "Rate limit exceeded"},
        headers={"Retry-After": str(retry_after_seconds)},
    )


class AuthenticationMiddleware(BaseHTTPMiddleware):
    """
    Require a Bearer JWT on every non-public path; attach the Principal to request.state.
    Each rejected token is charged to the client address: 401 until that budget is spent, then 429.
    """

    async def _reject(self, request: Request, detail: str) -> Response:
        decision = await dependencies.get_rate_limiter().check_auth_failure(_client_address(request))
        if not decision.allowed:
            return _too_many_requests(decision.retry_after_seconds)
        return JSONResponse(
            status_code=401,
            content={"detail": detail},
            headers={"WWW-Authenticate": "Bearer"},
        )

    async def dispatch(self, request: Request, call_next) -> Response:
        request.state.principal = None
        if request.url.path in PUBLIC_PATHS:
            return await call_next(request)

        try:
            authenticator = dependencies.get_authenticator()
        except SecurityConfigurationError:
            logger.exception("authenticator_misconfigured")
            return JSONResponse(status_code=500, content={"detail": "Internal server error"})

        header = request.headers.get(AUTHORIZATION_HEADER, "")
        scheme, _, token = header.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return await self._reject(request, "Bearer token is required")
        try:
            principal = authenticator.authenticate(token.strip())
        except AuthenticationError as e:
            return await self._reject(request, e.message)
        request.state.principal = principal
        actor_id_ctx.set(principal.actor_id)
        return await call_next(request)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-principal window on authenticated requests. 429 when exceeded."""

    async def dispatch(self, request: Request, call_next) -> Response:
        principal = getattr(request.state, "principal", None)
        if principal is None:
            return await call_next(request)
        decision = await dependencies.get_rate_limiter().check_principal(principal.actor_id)
        if not decision.allowed:
            return _too_many_requests(decision.retry_after_seconds)
        return await call_next(request)


class AuditTriggerMiddleware(BaseHTTPMiddleware):
    """After response: log structured audit event (correlation_id, actor_id, path, method, status_code)."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        correlation_id = getattr(request.state, "correlation_id", None)
        principal = getattr(request.state, "principal", None)
        audit_event = {
            "event": "request_audit",
            "correlation_id": correlation_id,
            "actor_id": principal.actor_id if principal else None,
            "role": principal.role.value if principal else None,
            "path": request.url.path,
            "method": request.method,
            "status_code": response.status_code,
        }
        logger.info(json.dumps(audit_event))
        return response
