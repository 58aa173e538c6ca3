"""
Key material helpers for the session store.

This module provides secure key generation, key validation and parsing of the
"hash_key[:block_key]" strings used to configure signing/encryption key pairs.
"""

import logging
import secrets
import string
from typing import NamedTuple, Optional

from sessionstore.core.exceptions import KeyConfigurationError

logger = logging.getLogger(__name__)

MIN_KEY_LENGTH = 32

INSECURE_DEFAULTS = [
    "your-secret-key-here-change-in-production",
    "change-me",
    "secret",
    "password",
    "123456",
    "admin",
]


class KeyPair(NamedTuple):
    """A signing key and an optional encryption key"""

    hash_key: bytes
    block_key: Optional[bytes] = None


def generate_secure_secret_key(length: int = 64) -> str:
    """
    Generate a cryptographically secure secret key.

    Args:
        length: Length of the secret key (default: 64 characters)

    Returns:
        A secure random string suitable for a hash or block key
    """
    # ':' is the pair separator, so it never appears in generated keys
    alphabet = string.ascii_letters + string.digits + "-_"
    return ''.join(secrets.choice(alphabet) for _ in range(length))


def validate_secret_key(secret_key: str) -> None:
    """
    Validate that a secret key meets security requirements.

    Args:
        secret_key: The secret key to validate

    Raises:
        KeyConfigurationError: If the secret key doesn't meet requirements
    """
    if not secret_key:
        raise KeyConfigurationError("session key cannot be empty")

    if len(secret_key) < MIN_KEY_LENGTH:
        raise KeyConfigurationError(
            f"session key must be at least {MIN_KEY_LENGTH} characters long"
        )

    if secret_key.lower() in [default.lower() for default in INSECURE_DEFAULTS]:
        raise KeyConfigurationError("session key appears to be an insecure default value")

    unique_chars = len(set(secret_key.lower()))
    if unique_chars < 8:
        raise KeyConfigurationError("session key has insufficient entropy (too repetitive)")


def parse_key_pair(value: str) -> KeyPair:
    """
    Parse a "hash_key[:block_key]" string into a validated KeyPair.

    Args:
        value: Key pair specification

    Returns:
        KeyPair with the block key set only when one was given
    """
    hash_key, _, block_key = value.strip().partition(":")
    validate_secret_key(hash_key)
    if block_key:
        validate_secret_key(block_key)
        return KeyPair(hash_key.encode("utf-8"), block_key.encode("utf-8"))
    return KeyPair(hash_key.encode("utf-8"))


def generate_key_pair(encrypt: bool = True) -> str:
    """Generate a new key pair specification suitable for SESSION_SECRET_KEYS"""
    hash_key = generate_secure_secret_key()
    if not encrypt:
        return hash_key
    return f"{hash_key}:{generate_secure_secret_key()}"
