from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from sessionstore.db.base import Base


class SessionRecord(Base):
    """Persisted session: one row per session id."""

    __tablename__ = "sessions"

    id: Mapped[str] = mapped_column(String(24), primary_key=True)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    # Naive UTC; indexed for expiry sweeps
    modified: Mapped[datetime] = mapped_column(DateTime, index=True, nullable=False)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<SessionRecord(id={self.id!r}, modified={self.modified!r})>"
