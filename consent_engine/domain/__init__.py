"""Domain layer: models, schemas, validators, exceptions. Pure business logic only."""

from consent_engine.domain.exceptions import (
    ConsentValidationError,
    DomainError,
    InvalidTransitionError,
)
from consent_engine.domain.models import (
    AccessLevel,
    ConsentPage,
    ConsentRecord,
    ConsentScope,
    ConsentStatus,
    ValidityWindow,
)

__all__ = [
    "AccessLevel",
    "ConsentPage",
    "ConsentRecord",
    "ConsentScope",
    "ConsentStatus",
    "ConsentValidationError",
    "DomainError",
    "InvalidTransitionError",
    "ValidityWindow",
]
