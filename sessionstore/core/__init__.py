"""Session lifecycle: codecs, transports, persistence and orchestration."""

from sessionstore.core.codec import CodecChain, SecureCodec
from sessionstore.core.config import Settings, StoreConfig
from sessionstore.core.repository import SessionRecordRepository
from sessionstore.core.security import KeyPair
from sessionstore.core.session import Session, SessionOptions
from sessionstore.core.store import SessionStore
from sessionstore.core.transport import CookieTransport, HeaderTransport, TokenTransport

__all__ = [
    "CodecChain",
    "CookieTransport",
    "HeaderTransport",
    "KeyPair",
    "SecureCodec",
    "Session",
    "SessionOptions",
    "SessionRecordRepository",
    "SessionStore",
    "Settings",
    "StoreConfig",
    "TokenTransport",
]
