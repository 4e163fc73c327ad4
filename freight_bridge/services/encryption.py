"""
Encryption service for distributor credentials

Fernet (AES-128-CBC + HMAC) with a key derived from SECRET_KEY.
Used for the Ingram client secret and cached access token, and the
TD SYNNEX password, which are all stored encrypted at rest.
"""
import base64
import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from freight_bridge.core.config import settings

logger = logging.getLogger(__name__)

_ENCRYPTION_SALT = b"freight_bridge_credentials_v1"

_fernet: Optional[Fernet] = None


def _get_fernet() -> Fernet:
    """Get or create Fernet instance with derived key."""
    global _fernet

    if _fernet is None:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=_ENCRYPTION_SALT,
            iterations=100000,
        )
        key = base64.urlsafe_b64encode(kdf.derive(settings.SECRET_KEY.encode()))
        _fernet = Fernet(key)

    return _fernet


def encrypt_secret(plaintext: Optional[str]) -> str:
    """
    Encrypt a credential value.

    Args:
        plaintext: Secret to encrypt

    Returns:
        Fernet token as text, or "" for empty input
    """
    if not plaintext:
        return ""

    try:
        return _get_fernet().encrypt(plaintext.encode()).decode()
    except Exception as e:
        logger.error(f"Encryption failed: {e}")
        raise ValueError("Failed to encrypt credential")


def decrypt_secret(ciphertext: Optional[str]) -> str:
    """Decrypt a value produced by encrypt_secret."""
    if not ciphertext:
        return ""

    try:
        return _get_fernet().decrypt(ciphertext.encode()).decode()
    except InvalidToken:
        logger.error("Decryption failed: Invalid token (wrong key or corrupted data)")
        raise ValueError("Failed to decrypt credential - invalid token")


def mask_secret(value: Optional[str], visible: int = 4) -> str:
    """Mask a secret for display, keeping the last few characters."""
    if not value:
        return ""
    if len(value) <= visible:
        return "*" * len(value)
    return "*" * (len(value) - visible) + value[-visible:]
