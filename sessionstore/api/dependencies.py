"""FastAPI dependencies for the session store."""

import logging
from typing import Optional

from fastapi import HTTPException, Request, status

from sessionstore.core.exceptions import DecodeError, StoreUnavailableError
from sessionstore.core.session import Session
from sessionstore.core.store import SessionStore

logger = logging.getLogger(__name__)


def get_session_store(request: Request) -> SessionStore:
    """Return the SessionStore attached to the application"""
    store = getattr(request.app.state, "session_store", None)
    if store is None:
        raise RuntimeError("No session store configured on app.state.session_store")
    return store


class SessionDependency:
    """
    Resolve the named session for the current request.

    Usage:
        current_session = SessionDependency("session")

        @router.get("/")
        def index(session: Session = Depends(current_session)):
            ...

    Args:
        name: Session (and cookie) name; defaults to app.state.session_name
        reject_invalid_tokens: Respond 400 to forged or expired tokens instead
            of continuing with an anonymous session
    """

    def __init__(self, name: Optional[str] = None, reject_invalid_tokens: bool = False):
        self.name = name
        self.reject_invalid_tokens = reject_invalid_tokens

    def __call__(self, request: Request) -> Session:
        store = get_session_store(request)
        try:
            return store.get(request, self.name or request.app.state.session_name)
        except DecodeError as e:
            if self.reject_invalid_tokens or e.session is None:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Invalid session token",
                ) from e
            return e.session
        except StoreUnavailableError as e:
            logger.error("Session store unavailable: %s", e)
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Session store unavailable",
            ) from e
