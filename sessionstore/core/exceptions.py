"""
Error taxonomy for the session store.

Recoverable kinds (RecordNotFoundError, PayloadDecodeError) are absorbed by
SessionStore during load; everything else propagates to the caller.
"""

from typing import Any


class SessionStoreError(Exception):
    """Base class for all session store errors"""
    pass


class KeyConfigurationError(SessionStoreError, ValueError):
    """Raised when signing/encryption key material is missing or malformed"""
    pass


class InvalidIdentifierError(SessionStoreError, ValueError):
    """Raised when a session id does not match the store's key format"""

    def __init__(self, identifier: object = None):
        self.identifier = identifier
        super().__init__("invalid session id")


class TokenNotFoundError(SessionStoreError):
    """Raised by a transport when the request carries no token"""
    pass


class DecodeError(SessionStoreError):
    """
    Raised when a token fails signature, expiry, decryption or format checks.

    When raised by SessionStore.new(), session holds the fresh session the
    caller may fall back to.
    """

    def __init__(self, *args: object, session: Any = None):
        super().__init__(*args)
        self.session = session


class PayloadDecodeError(DecodeError):
    """Raised when a stored session payload cannot be decoded"""
    pass


class EncodeError(SessionStoreError):
    """Raised when session values or an id cannot be encoded"""
    pass


class RecordNotFoundError(SessionStoreError, LookupError):
    """Raised when no record exists for a session id"""

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"session record not found: {identifier}")


class StoreUnavailableError(SessionStoreError):
    """Raised when the backing database fails or cannot be reached"""
    pass


class StoreTimeoutError(StoreUnavailableError, TimeoutError):
    """Raised when a backing database call exceeds the configured timeout"""

    def __init__(self, operation: str, timeout: float):
        self.operation = operation
        self.timeout = timeout
        super().__init__(f"session store {operation} exceeded {timeout}s")


class InvalidModifiedError(SessionStoreError, TypeError):
    """Raised when a session's modified timestamp is not a datetime"""
    pass
