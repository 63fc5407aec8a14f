"""Domain validators. Pure validation functions."""

from consent_engine.domain.validators.consent_validator import (
    validate_metadata,
    validate_new_consent,
    validate_paging,
    validate_party_id,
    validate_scope,
    validate_window,
)

__all__ = [
    "validate_metadata",
    "validate_new_consent",
    "validate_paging",
    "validate_party_id",
    "validate_scope",
    "validate_window",
]
