"""Encryption of Strava OAuth tokens at rest.

Uses Fernet symmetric encryption. The key is derived from the application
secret with PBKDF2-HMAC-SHA256 (480,000 iterations, 32-byte key) and the
deployment's encryption salt.

## Usage

```python
from strava_weather.database.encryption import encrypt_token, decrypt_token

encrypted = encrypt_token(access_token)   # store this
access_token = decrypt_token(encrypted)   # after loading
```
"""

from __future__ import annotations

import base64
import logging

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

logger = logging.getLogger(__name__)

# Module-level cipher instance (initialized on first use)
_fernet: Fernet | None = None


def _get_fernet() -> Fernet:
    """Get or create the Fernet cipher instance."""
    global _fernet

    if _fernet is None:
        from strava_weather.config import get_settings

        settings = get_settings()
        _fernet = _create_fernet(settings.secret_key, settings.encryption_salt)

    return _fernet


def _create_fernet(secret_key: str, salt: str) -> Fernet:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt.encode("utf-8"),
        iterations=480_000,
    )
    key = base64.urlsafe_b64encode(kdf.derive(secret_key.encode("utf-8")))
    return Fernet(key)


def encrypt_token(plaintext: str) -> str:
    """Encrypt a token for storage. Empty input stays empty."""
    if not plaintext:
        return ""
    return _get_fernet().encrypt(plaintext.encode("utf-8")).decode("utf-8")


def decrypt_token(ciphertext: str) -> str:
    """Decrypt a stored token.

    Raises:
        ValueError: If decryption fails (invalid token or wrong key)
    """
    if not ciphertext:
        return ""

    try:
        return _get_fernet().decrypt(ciphertext.encode("utf-8")).decode("utf-8")
    except InvalidToken as e:
        logger.error("Failed to decrypt token: invalid token or key")
        raise ValueError("Failed to decrypt token") from e


def reset_cipher() -> None:
    """Reset the cached cipher instance (after a configuration change)."""
    global _fernet
    _fernet = None
