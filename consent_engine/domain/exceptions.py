"""Domain-specific exceptions. Pure domain layer: no infrastructure."""


class DomainError(Exception):
    """Base for all domain-layer errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ConsentValidationError(DomainError):
    """Raised when scope, validity window or paging input is malformed. Rejected before any side effect."""


class InvalidTransitionError(DomainError):
    """Raised when a consent status transition is not allowed by the lifecycle lattice."""
