"""Domain models. Pure business entities."""

from consent_engine.domain.models.consent import (
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
    "ValidityWindow",
]
