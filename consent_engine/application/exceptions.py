"""Application-layer exceptions. Do not reuse domain exceptions."""


class ApplicationError(Exception):
    """Base for all application-layer errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ConsentNotFoundError(ApplicationError):
    """Raised when a consent id does not reference an existing record."""


class ConcurrentModificationError(ApplicationError):
    """Raised when another status change on the same consent is in progress or won the version race."""


class LedgerUnavailableError(ApplicationError):
    """Raised when the verification ledger call failed after retries or the circuit is open. Nothing was persisted."""


class LedgerRejectedError(LedgerUnavailableError):
    """Raised when the ledger permanently rejected an entry (e.g. malformed payload). Not retried."""
