"""Bearer-token authentication (JWT, HS256 by default). No FastAPI."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from consent_engine.security.exceptions import AuthenticationError, SecurityConfigurationError
from consent_engine.security.rbac import Role

logger = logging.getLogger(__name__)

MIN_SECRET_LENGTH = 32


@dataclass(frozen=True)
class Principal:
    """Authenticated caller: actor id (token subject) and role."""

    actor_id: str
    role: Role


class TokenAuthenticator:
    """
    Validates bearer tokens and maps claims to a Principal.
    Required claims: sub, role, exp. Secret is passed in; no global state.
    """

    def __init__(self, secret: str, algorithm: str = "HS256", issuer: Optional[str] = None) -> None:
        if not secret or len(secret) < MIN_SECRET_LENGTH:
            raise SecurityConfigurationError(
                f"JWT secret must be at least {MIN_SECRET_LENGTH} characters"
            )
        self._secret = secret
        self._algorithm = algorithm
        self._issuer = issuer

    def _decode(self, token: str) -> Dict[str, Any]:
        options = {"require": ["sub", "exp"]}
        try:
            if self._issuer:
                return jwt.decode(
                    token, self._secret, algorithms=[self._algorithm], issuer=self._issuer, options=options
                )
            return jwt.decode(token, self._secret, algorithms=[self._algorithm], options=options)
        except jwt.ExpiredSignatureError as e:
            raise AuthenticationError("Token has expired") from e
        except jwt.PyJWTError as e:
            logger.warning("jwt_validation_failed", extra={"error": str(e)})
            raise AuthenticationError("Invalid authentication token") from e

    def authenticate(self, token: str) -> Principal:
        """Return the Principal for token. Raises AuthenticationError."""
        if not token or not token.strip():
            raise AuthenticationError("Missing authentication token")
        claims = self._decode(token.strip())
        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject.strip():
            raise AuthenticationError("Token subject is missing")
        try:
            role = Role(str(claims.get("role", "")).upper())
        except ValueError as e:
            raise AuthenticationError("Token role is missing or unknown") from e
        return Principal(actor_id=subject.strip(), role=role)

    def issue(self, actor_id: str, role: Role, expires_in: timedelta = timedelta(hours=1)) -> str:
        """Sign a token for actor_id. Used by operators and tests."""
        now = datetime.now(timezone.utc)
        claims: Dict[str, Any] = {
            "sub": actor_id,
            "role": role.value,
            "iat": now,
            "exp": now + expires_in,
        }
        if self._issuer:
            claims["iss"] = self._issuer
        return jwt.encode(claims, self._secret, algorithm=self._algorithm)
