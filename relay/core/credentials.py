"""Encryption for channel access tokens and AI backend API keys at rest."""

from __future__ import annotations

from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from relay.config import get_settings
from relay.core.errors import ConfigurationError


def _get_fernet() -> Fernet:
    """Get a Fernet instance with the credential master key."""
    settings = get_settings()
    key = settings.credential_master_key or settings.fernet_key
    if not key:
        raise ConfigurationError(
            "CREDENTIAL_MASTER_KEY or FERNET_KEY must be set for credential encryption"
        )
    return Fernet(key.encode() if isinstance(key, str) else key)


def encrypt_secret(value: str) -> bytes:
    """Encrypt a secret string using the master key."""
    return _get_fernet().encrypt(value.encode("utf-8"))


def decrypt_secret(value: Optional[bytes]) -> Optional[str]:
    """Decrypt a stored secret. ``None`` stays ``None``."""
    if value is None:
        return None
    try:
        return _get_fernet().decrypt(bytes(value)).decode("utf-8")
    except InvalidToken as e:
        raise ConfigurationError("Stored credential cannot be decrypted") from e
