import logging
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.engine import make_url

from sessionstore import __version__
from sessionstore.api import sessions
from sessionstore.core.config import Settings, StoreConfig
from sessionstore.core.config import settings as default_settings
from sessionstore.core.exceptions import DecodeError, StoreUnavailableError
from sessionstore.core.logging_config import init_application_logging
from sessionstore.core.repository import SessionRecordRepository
from sessionstore.core.store import SessionStore
from sessionstore.core.transport import CookieTransport, HeaderTransport
from sessionstore.db.session import build_engine, is_memory_database, make_session_factory

logger = logging.getLogger("sessionstore.main")


def _ensure_sqlite_directory(database_url: str) -> None:
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and not is_memory_database(database_url):
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)


def build_store(settings: Settings) -> SessionStore:
    """Wire engine, repository, transport and configuration into a SessionStore"""
    _ensure_sqlite_directory(settings.database_url)
    engine = build_engine(settings.database_url, timeout=settings.store_timeout)
    repository = SessionRecordRepository(make_session_factory(engine), timeout=settings.store_timeout)
    repository.ensure_schema()

    if settings.token_header:
        transport = HeaderTransport(settings.token_header)
    else:
        transport = CookieTransport()

    return SessionStore(repository, StoreConfig.from_settings(settings), transport)


async def _store_unavailable_handler(request: Request, exc: StoreUnavailableError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Session store unavailable"},
    )


async def _decode_error_handler(request: Request, exc: DecodeError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Invalid session token"},
    )


def create_app(settings: Optional[Settings] = None, configure_logging: bool = True) -> FastAPI:
    """
    Create the FastAPI application.

    Run with: uvicorn sessionstore.main:create_app --factory
    """
    settings = settings or default_settings

    if configure_logging:
        init_application_logging(
            log_level=settings.log_level,
            enable_json=settings.json_logs,
            debug=settings.debug,
        )

    app = FastAPI(
        title=settings.app_name,
        description="Database-backed sessions referenced by signed tokens",
        version=__version__,
    )

    app.state.settings = settings
    app.state.session_name = settings.cookie_name
    app.state.session_store = build_store(settings)

    app.add_exception_handler(StoreUnavailableError, _store_unavailable_handler)
    app.add_exception_handler(DecodeError, _decode_error_handler)

    app.include_router(sessions.router, tags=["Sessions"])

    logger.info(
        "Session store initialized",
        extra={
            "session_name": settings.cookie_name,
            "transport": "header" if settings.token_header else "cookie",
            "max_age": settings.max_age,
        },
    )
    return app
