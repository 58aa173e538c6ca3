"""Database-backed web sessions referenced by signed cookie tokens."""

from sessionstore.core import (
    CookieTransport,
    HeaderTransport,
    Session,
    SessionOptions,
    SessionRecordRepository,
    SessionStore,
    StoreConfig,
)

__version__ = "1.0.0"

__all__ = [
    "CookieTransport",
    "HeaderTransport",
    "Session",
    "SessionOptions",
    "SessionRecordRepository",
    "SessionStore",
    "StoreConfig",
    "__version__",
]
