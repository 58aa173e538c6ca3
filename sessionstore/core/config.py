"""
Session store configuration using Pydantic Settings.

Configuration values can be set via SESSION_* environment variables or a .env
file. StoreConfig is the immutable view handed to SessionStore.
"""

import json
from dataclasses import dataclass, replace
from typing import List, Optional, Tuple

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sessionstore.core.exceptions import KeyConfigurationError
from sessionstore.core.security import KeyPair, parse_key_pair
from sessionstore.core.session import SessionOptions

DEFAULT_MAX_AGE = 86400 * 30
SAME_SITE_VALUES = ("lax", "strict", "none")


class Settings(BaseSettings):
    """Session store settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_prefix="SESSION_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "sessionstore"
    debug: bool = False
    host: str = "127.0.0.1"
    port: int = 8000

    # Backing database
    database_url: str = "sqlite:///./data/sessions.db"
    store_timeout: float = 5.0

    # Token options
    cookie_name: str = "session"
    max_age: int = DEFAULT_MAX_AGE
    path: str = "/"
    domain: Optional[str] = None
    secure: bool = False
    http_only: bool = True
    same_site: str = "lax"

    # When set, tokens travel in this header instead of a cookie
    token_header: Optional[str] = None

    # "hash_key[:block_key]" entries, oldest first, newest last.
    # Accepts a JSON list or a comma-separated string.
    secret_keys: str = ""

    # Logging
    log_level: str = "INFO"
    json_logs: bool = True

    @field_validator("same_site")
    @classmethod
    def validate_same_site(cls, value: str) -> str:
        value = value.lower()
        if value not in SAME_SITE_VALUES:
            raise ValueError(f"same_site must be one of {', '.join(SAME_SITE_VALUES)}")
        return value

    @field_validator("store_timeout")
    @classmethod
    def validate_store_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("store_timeout must be positive")
        return value

    @staticmethod
    def parse_secret_keys(value: str) -> List[str]:
        """Parse secret keys from a JSON list or a comma-separated string"""
        value = value.strip()
        if not value:
            return []
        if value.startswith("["):
            try:
                parsed = json.loads(value)
            except json.JSONDecodeError:
                parsed = None
            if isinstance(parsed, list):
                return [str(item).strip() for item in parsed if str(item).strip()]
        return [item.strip() for item in value.split(",") if item.strip()]

    def key_pairs(self) -> List[KeyPair]:
        return [parse_key_pair(item) for item in self.parse_secret_keys(self.secret_keys)]


@dataclass(frozen=True)
class StoreConfig:
    """
    Immutable store-wide configuration.

    key_pairs are ordered oldest first, newest last; the newest pair signs new
    tokens. Default options are copied into every session at creation time.
    """

    key_pairs: Tuple[KeyPair, ...]
    max_age: int = DEFAULT_MAX_AGE
    path: str = "/"
    domain: Optional[str] = None
    secure: bool = False
    http_only: bool = True
    same_site: str = "lax"
    timeout: float = 5.0

    def __post_init__(self) -> None:
        if not self.key_pairs:
            raise KeyConfigurationError("at least one key pair is required")
        object.__setattr__(self, "key_pairs", tuple(self.key_pairs))

    def default_options(self) -> SessionOptions:
        """Return a fresh copy of the default session options"""
        return SessionOptions(
            path=self.path,
            domain=self.domain or None,
            max_age=self.max_age,
            secure=self.secure,
            http_only=self.http_only,
            same_site=self.same_site,
        )

    def with_max_age(self, max_age: int) -> "StoreConfig":
        return replace(self, max_age=max_age)

    def with_key_pair(self, key_pair: KeyPair) -> "StoreConfig":
        """Return a config with key_pair appended as the newest pair"""
        return replace(self, key_pairs=self.key_pairs + (key_pair,))

    @classmethod
    def from_settings(cls, settings: Settings) -> "StoreConfig":
        key_pairs = settings.key_pairs()
        if not key_pairs:
            raise KeyConfigurationError(
                "SESSION_SECRET_KEYS must contain at least one key pair"
            )
        return cls(
            key_pairs=tuple(key_pairs),
            max_age=settings.max_age,
            path=settings.path,
            domain=settings.domain,
            secure=settings.secure,
            http_only=settings.http_only,
            same_site=settings.same_site,
            timeout=settings.store_timeout,
        )


# Global settings instance
settings = Settings()
