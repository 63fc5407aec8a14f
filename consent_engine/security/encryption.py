"""Field encryption for consent purpose and metadata at rest (Fernet, with key rotation)."""

import base64
import json
import os
from typing import Any, Optional, Sequence

from cryptography.fernet import Fernet, InvalidToken, MultiFernet
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from consent_engine.security.exceptions import EncryptionError

FIELD_SALT = b"consent_engine_field_encryption_v1"
KDF_ITERATIONS = 480000


def _fernet_for(secret: str) -> Fernet:
    """Fernet keys are 32 url-safe base64 bytes; operators supply passphrases of any length."""
    kdf = PBKDF2HMAC(algorithm=hashes.SHA256(), length=32, salt=FIELD_SALT, iterations=KDF_ITERATIONS)
    return Fernet(base64.urlsafe_b64encode(kdf.derive(secret.encode("utf-8"))))


class EncryptionService:
    """
    Encrypts with the current key; decrypts with the current key or any retired one,
    so rows written before a rotation stay readable.
    The key is passed in (ENCRYPTION_KEY in production); nothing is cached globally.
    """

    def __init__(self, key: Optional[str] = None, previous_keys: Sequence[str] = ()) -> None:
        current = (key or os.environ.get("ENCRYPTION_KEY") or "").strip()
        if not current:
            raise EncryptionError(
                "Encryption key is required. Set ENCRYPTION_KEY in environment."
            )
        retired = [k.strip() for k in previous_keys if k and k.strip()]
        self._cipher = MultiFernet([_fernet_for(k) for k in [current, *retired]])

    def encrypt(self, plaintext: str) -> str:
        """Returns a Fernet token (already url-safe base64 text)."""
        return self._cipher.encrypt(plaintext.encode("utf-8")).decode("ascii")

    def decrypt(self, token: str) -> str:
        """Raises EncryptionError if no configured key opens the token."""
        try:
            return self._cipher.decrypt(token.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeError) as e:
            raise EncryptionError("Decryption failed: invalid token or unknown key") from e

    def encrypt_json(self, value: Any) -> Optional[str]:
        if value is None:
            return None
        return self.encrypt(json.dumps(value, sort_keys=True))

    def decrypt_json(self, token: Optional[str]) -> Any:
        if token is None:
            return None
        return json.loads(self.decrypt(token))
