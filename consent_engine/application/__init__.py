# Application layer: services that orchestrate domain and infrastructure.

from consent_engine.application.consent_cache import CacheBackend, ConsentCache
from consent_engine.application.consent_repository import ConsentRepository
from consent_engine.application.consent_service import ConsentService
from consent_engine.application.exceptions import (
    ApplicationError,
    ConcurrentModificationError,
    ConsentNotFoundError,
    LedgerRejectedError,
    LedgerUnavailableError,
)
from consent_engine.application.ledger import (
    LedgerClient,
    LedgerEntry,
    LedgerError,
    LedgerEventType,
    PermanentLedgerError,
    TransientLedgerError,
    verify_chain,
)
from consent_engine.application.ledger_gateway import LedgerGateway

__all__ = [
    "ConsentService",
    "ConsentCache",
    "CacheBackend",
    "ConsentRepository",
    "LedgerGateway",
    "LedgerClient",
    "LedgerEntry",
    "LedgerError",
    "LedgerEventType",
    "TransientLedgerError",
    "PermanentLedgerError",
    "verify_chain",
    "ApplicationError",
    "ConsentNotFoundError",
    "ConcurrentModificationError",
    "LedgerUnavailableError",
    "LedgerRejectedError",
]
