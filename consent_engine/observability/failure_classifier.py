"""Failure categorization for metrics. Maps exceptions to taxonomy."""

from enum import Enum

from consent_engine.application.exceptions import (
    ApplicationError,
    ConcurrentModificationError,
    ConsentNotFoundError,
    LedgerUnavailableError,
)
from consent_engine.domain.exceptions import (
    ConsentValidationError,
    DomainError,
    InvalidTransitionError,
)
from consent_engine.security.exceptions import (
    AccessDeniedError,
    AuthenticationError,
    AuthorizationError,
    SecurityError,
)


class FailureCategory(str, Enum):
    """Taxonomy for failure classification."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    LEDGER_UNAVAILABLE = "LEDGER_UNAVAILABLE"
    POLICY_VIOLATION = "POLICY_VIOLATION"
    INFRA_ERROR = "INFRA_ERROR"
    UNEXPECTED_ERROR = "UNEXPECTED_ERROR"


class FailureClassifier:
    """
    Classifies exceptions into FailureCategory. The caller increments metrics
    (the API exception handlers do, under request_failed).
    """

    @staticmethod
    def classify(exception: BaseException) -> FailureCategory:
        """Map exception to FailureCategory. Unknown -> UNEXPECTED_ERROR."""
        if isinstance(exception, ConsentValidationError):
            return FailureCategory.VALIDATION_ERROR
        if isinstance(exception, InvalidTransitionError):
            return FailureCategory.INVALID_TRANSITION
        if isinstance(exception, ConsentNotFoundError):
            return FailureCategory.NOT_FOUND
        if isinstance(exception, ConcurrentModificationError):
            return FailureCategory.CONFLICT
        if isinstance(exception, LedgerUnavailableError):
            return FailureCategory.LEDGER_UNAVAILABLE
        if isinstance(exception, (AuthenticationError, AuthorizationError, AccessDeniedError)):
            return FailureCategory.POLICY_VIOLATION
        if isinstance(exception, (SecurityError, ApplicationError)):
            return FailureCategory.INFRA_ERROR
        if isinstance(exception, DomainError):
            return FailureCategory.VALIDATION_ERROR
        return FailureCategory.UNEXPECTED_ERROR
