"""
Session API endpoints.

A minimal surface over SessionStore: inspect the current session, set a value,
delete the session, and check backing store health.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from sessionstore.api.dependencies import SessionDependency, get_session_store
from sessionstore.core.session import Session
from sessionstore.core.store import SessionStore

logger = logging.getLogger(__name__)

router = APIRouter()

current_session = SessionDependency()


class SessionValue(BaseModel):
    """Request model for setting a session value"""
    value: Any

    model_config = {
        "json_schema_extra": {
            "example": {"value": "alice"}
        }
    }


class SessionResponse(BaseModel):
    """Response model describing the current session"""
    id: Optional[str]
    is_new: bool
    values: Dict[str, Any]

    model_config = {
        "json_schema_extra": {
            "example": {
                "id": "6710f3c2a1b2c3d4e5f60718",
                "is_new": False,
                "values": {"user": "alice"}
            }
        }
    }


def _describe(session: Session) -> SessionResponse:
    return SessionResponse(id=session.id, is_new=session.is_new, values=session.values)


@router.get("/session", response_model=SessionResponse)
def read_session(session: Session = Depends(current_session)) -> SessionResponse:
    """Return the current session without persisting it."""
    return _describe(session)


@router.put("/session/{key}", response_model=SessionResponse)
def set_session_value(
    key: str,
    body: SessionValue,
    request: Request,
    response: Response,
    session: Session = Depends(current_session),
    store: SessionStore = Depends(get_session_store),
) -> SessionResponse:
    """Set one value and save the session, issuing a token."""
    session.values[key] = body.value
    store.save(request, response, session)
    return _describe(session)


@router.delete("/session", status_code=status.HTTP_204_NO_CONTENT)
def delete_session(
    response: Response,
    session: Session = Depends(current_session),
    store: SessionStore = Depends(get_session_store),
) -> Response:
    """Delete the session record and clear the token."""
    store.delete(response, session)
    response.status_code = status.HTTP_204_NO_CONTENT
    return response


@router.get("/health")
def health(store: SessionStore = Depends(get_session_store)) -> JSONResponse:
    """Report backing store connectivity."""
    healthy = store.repository.health_check()
    if not healthy:
        logger.warning("Session store health check reported unhealthy")
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "healthy" if healthy else "unhealthy", "database": healthy},
    )
