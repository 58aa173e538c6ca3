"""
Global test configuration and fixtures for the session store

This module provides shared fixtures: key material, a temporary SQLite
database, and the repository and store built on it.
"""

import os
import tempfile

import pytest
from starlette.responses import Response

from sessionstore.core.config import StoreConfig
from sessionstore.core.repository import SessionRecordRepository
from sessionstore.core.security import KeyPair, generate_secure_secret_key
from sessionstore.core.store import SessionStore
from sessionstore.db.base import Base
from sessionstore.db.session import build_engine, make_session_factory


# ============================================================================
# Key Material Fixtures
# ============================================================================

@pytest.fixture(scope="function")
def key_pair():
    """Signing-only key pair"""
    return KeyPair(generate_secure_secret_key().encode())


@pytest.fixture(scope="function")
def encrypted_key_pair():
    """Signing and encryption key pair"""
    return KeyPair(generate_secure_secret_key().encode(), generate_secure_secret_key().encode())


@pytest.fixture(scope="function")
def store_config(key_pair):
    """Store configuration with max_age=3600 and one key pair"""
    return StoreConfig(key_pairs=(key_pair,), max_age=3600)


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture(scope="function")
def test_engine():
    """Create a temporary SQLite database for each test function"""
    db_fd, db_path = tempfile.mkstemp(suffix='.db')
    engine = build_engine(f"sqlite:///{db_path}", timeout=2.0)
    Base.metadata.create_all(bind=engine)

    yield engine

    engine.dispose()
    os.close(db_fd)
    os.unlink(db_path)


@pytest.fixture(scope="function")
def session_factory(test_engine):
    return make_session_factory(test_engine)


@pytest.fixture(scope="function")
def repository(session_factory):
    """Repository bound to the temporary database"""
    return SessionRecordRepository(session_factory, timeout=2.0)


@pytest.fixture(scope="function")
def store(repository, store_config):
    """Cookie-backed store bound to the temporary database"""
    return SessionStore(repository, store_config)


@pytest.fixture(scope="function")
def response():
    return Response()


# ============================================================================
# Test Markers and Configuration
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "security: mark test as security-related"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as exercising the HTTP application"
    )


def pytest_collection_modifyitems(config, items):
    """Add markers based on file location"""
    for item in items:
        path = str(item.fspath)
        if "security" in path:
            item.add_marker(pytest.mark.security)
        if "integration" in path:
            item.add_marker(pytest.mark.integration)
