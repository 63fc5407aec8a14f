"""Security-layer exceptions. Typed, no HTTP."""


class SecurityError(Exception):
    """Base for all security-layer errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class AuthenticationError(SecurityError):
    """Raised when a bearer token is missing, malformed, expired or badly signed."""


class AuthorizationError(SecurityError):
    """Raised when role does not have permission for the action."""


class AccessDeniedError(SecurityError):
    """Raised when the principal is not a party to the consent (subject, requester) nor an admin."""


class EncryptionError(SecurityError):
    """Raised when encryption/decryption fails (e.g. missing key, wrong key)."""


class SecurityConfigurationError(SecurityError):
    """Raised when security components are misconfigured (e.g. a JWT secret that is too short)."""
