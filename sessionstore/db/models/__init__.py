"""Database models"""

from sessionstore.db.models.session_record import SessionRecord

__all__ = ["SessionRecord"]
