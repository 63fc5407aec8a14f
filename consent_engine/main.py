# consent_engine/main.py

import logging

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from consent_engine.api.dependencies import get_authenticator, get_metrics
from consent_engine.api.middleware import (
    AuditTriggerMiddleware,
    AuthenticationMiddleware,
    CorrelationIdMiddleware,
    RateLimitMiddleware,
)
from consent_engine.api.routers import consents, health
from consent_engine.application.exceptions import (
    ApplicationError,
    ConcurrentModificationError,
    ConsentNotFoundError,
    LedgerUnavailableError,
)
from consent_engine.config.logging import configure_logging
from consent_engine.config.settings import get_settings
from consent_engine.domain.exceptions import (
    ConsentValidationError,
    DomainError,
    InvalidTransitionError,
)
from consent_engine.observability.failure_classifier import FailureClassifier
from consent_engine.security.exceptions import (
    AccessDeniedError,
    AuthenticationError,
    AuthorizationError,
    SecurityError,
)

settings = get_settings()
configure_logging(settings.log_level)
# A bad JWT secret fails the process at startup, not the first request.
get_authenticator()

logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    debug=settings.debug,
)

# Middleware order: last added runs first (outermost).
# Request flow: CorrelationId -> Authentication -> RateLimit -> AuditTrigger.
app.add_middleware(AuditTriggerMiddleware)
app.add_middleware(RateLimitMiddleware)
app.add_middleware(AuthenticationMiddleware)
app.add_middleware(CorrelationIdMiddleware)


def _error(status_code: int, exc: Exception, detail: str) -> JSONResponse:
    get_metrics().increment("request_failed", 1, category=FailureClassifier.classify(exc).value)
    return JSONResponse(status_code=status_code, content={"detail": detail})


@app.exception_handler(ConsentValidationError)
async def consent_validation_error_handler(request, exc: ConsentValidationError):
    return _error(422, exc, exc.message)


@app.exception_handler(InvalidTransitionError)
async def invalid_transition_error_handler(request, exc: InvalidTransitionError):
    return _error(409, exc, exc.message)


@app.exception_handler(DomainError)
async def domain_error_handler(request, exc: DomainError):
    return _error(400, exc, exc.message)


@app.exception_handler(ConsentNotFoundError)
async def consent_not_found_error_handler(request, exc: ConsentNotFoundError):
    return _error(404, exc, exc.message)


@app.exception_handler(ConcurrentModificationError)
async def concurrent_modification_error_handler(request, exc: ConcurrentModificationError):
    return _error(409, exc, exc.message)


@app.exception_handler(LedgerUnavailableError)
async def ledger_unavailable_error_handler(request, exc: LedgerUnavailableError):
    return _error(503, exc, exc.message)


@app.exception_handler(ApplicationError)
async def application_error_handler(request, exc: ApplicationError):
    return _error(500, exc, exc.message)


@app.exception_handler(AuthenticationError)
async def authentication_error_handler(request, exc: AuthenticationError):
    return _error(401, exc, exc.message)


@app.exception_handler(AuthorizationError)
async def authorization_error_handler(request, exc: AuthorizationError):
    return _error(403, exc, exc.message)


@app.exception_handler(AccessDeniedError)
async def access_denied_error_handler(request, exc: AccessDeniedError):
    return _error(403, exc, exc.message)


@app.exception_handler(SecurityError)
async def security_error_handler(request, exc: SecurityError):
    return _error(500, exc, "Internal server error")


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request, exc: RequestValidationError):
    get_metrics().increment("request_failed", 1, category="VALIDATION_ERROR")
    return JSONResponse(status_code=422, content={"detail": jsonable_errors(exc)})


@app.exception_handler(Exception)
async def unexpected_error_handler(request, exc: Exception):
    logger.exception("unhandled_error", extra={"path": request.url.path})
    return _error(500, exc, "Internal server error")


def jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]


# Routers: /health, /metrics, /consents
app.include_router(health.router)
app.include_router(consents.router, prefix="/consents")
