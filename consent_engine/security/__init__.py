"""Security: authentication, RBAC, party access policy, encryption. No FastAPI."""

from consent_engine.security.access_policy import ConsentAccessPolicy
from consent_engine.security.auth import Principal, TokenAuthenticator
from consent_engine.security.encryption import EncryptionService
from consent_engine.security.rbac import RBACService, Role

__all__ = [
    "ConsentAccessPolicy",
    "EncryptionService",
    "Principal",
    "RBACService",
    "Role",
    "TokenAuthenticator",
]
