import math
from contextlib import contextmanager
from typing import Any, Dict, Generator

from sqlalchemy import Engine, create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker

DEFAULT_TIMEOUT = 5.0


def get_connect_args(database_url: str, timeout: float = DEFAULT_TIMEOUT) -> Dict[str, Any]:
    """Get driver connection arguments that bound every call by timeout seconds"""
    backend = make_url(database_url).get_backend_name()
    seconds = max(1, math.ceil(timeout))

    if backend == "sqlite":
        # SQLite needs check_same_thread=False for FastAPI; timeout bounds lock waits
        return {"check_same_thread": False, "timeout": timeout}
    if backend == "postgresql":
        return {
            "connect_timeout": seconds,
            "options": f"-c statement_timeout={int(timeout * 1000)}",
        }
    if backend in ("mysql", "mariadb"):
        return {"connect_timeout": seconds, "read_timeout": seconds, "write_timeout": seconds}
    return {}


def is_memory_database(database_url: str) -> bool:
    url = make_url(database_url)
    return url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")


def build_engine(database_url: str, timeout: float = DEFAULT_TIMEOUT, **kwargs: Any) -> Engine:
    """Create an engine whose connect, pool checkout and statements are time-bounded"""
    options: Dict[str, Any] = {"pool_pre_ping": True}
    if not is_memory_database(database_url):
        # SQLite memory databases use SingletonThreadPool, which has no checkout timeout
        options["pool_timeout"] = timeout
    options.update(kwargs)
    return create_engine(
        database_url,
        connect_args=get_connect_args(database_url, timeout),
        **options,
    )


def make_session_factory(engine: Engine) -> sessionmaker:
    """Create the session factory used by repositories"""
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@contextmanager
def get_db_sync(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """Get a database session with proper resource management"""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()
