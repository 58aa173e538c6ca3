"""In-memory session objects handed to application code."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from sessionstore.core.exceptions import InvalidModifiedError


@dataclass
class SessionOptions:
    """Client-side visibility and lifetime of the session token"""

    path: str = "/"
    domain: Optional[str] = None
    # Seconds; 0 means a browser-session cookie, negative deletes the session
    max_age: int = 86400 * 30
    secure: bool = False
    http_only: bool = True
    same_site: str = "lax"


class Session:
    """
    A named session for a single request.

    Attributes:
        name: Session (and cookie) name
        id: Persistent identifier; None until the first successful save
        values: Application data, must be JSON-serializable
        options: Token options copied from the store defaults
        is_new: True until a load or save succeeds
    """

    def __init__(self, name: str, options: SessionOptions):
        self.name = name
        self.options = options
        self.id: Optional[str] = None
        self.values: Dict[str, Any] = {}
        self.is_new = True
        self._modified: Optional[datetime] = None

    @property
    def modified(self) -> Optional[datetime]:
        """Explicit last-activity time stored on the record instead of "now" """
        return self._modified

    @modified.setter
    def modified(self, value: Optional[datetime]) -> None:
        if value is not None and not isinstance(value, datetime):
            raise InvalidModifiedError(
                f"modified must be a datetime, not {type(value).__name__}"
            )
        self._modified = value

    def __repr__(self) -> str:
        return f"<Session(name={self.name!r}, id={self.id!r}, is_new={self.is_new})>"
