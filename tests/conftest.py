"""
Pytest configuration and shared fixtures for muat tests.

Provides:
- Identifier and record value fixtures
- File engine fixtures rooted in ``tmp_path`` (cheap scrypt cost)
- Factories for mocked aiohttp sessions and responses
"""

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from muat.backends.file import FileBackend, FileStore
from muat.core.config import FileEngineConfig
from muat.models import Did, Nsid, RecordValue


# Low scrypt cost keeps account tests fast; it is still a valid power of two
TEST_SCRYPT_N = 2**4


# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_logging() -> None:
    """Configure logging for tests."""
    logging.basicConfig(level=logging.DEBUG)


# ============================================================================
# Model Fixtures
# ============================================================================


@pytest.fixture
def did() -> Did:
    return Did("did:plc:abc123def456abc123def456")


@pytest.fixture
def collection() -> Nsid:
    return Nsid("org.test.record")


@pytest.fixture
def record_value() -> RecordValue:
    return RecordValue({"$type": "org.test.record", "text": "hi"})


# ============================================================================
# File Engine Fixtures
# ============================================================================


@pytest.fixture
def file_config() -> FileEngineConfig:
    return FileEngineConfig(poll_interval=0.05, scrypt_n=TEST_SCRYPT_N)


@pytest.fixture
def store(tmp_path: Path) -> FileStore:
    return FileStore(tmp_path, scrypt_n=TEST_SCRYPT_N)


@pytest.fixture
def file_backend(tmp_path: Path, file_config: FileEngineConfig) -> FileBackend:
    return FileBackend(tmp_path, file_config)


# ============================================================================
# HTTP Mock Helpers
# ============================================================================


def _make_response(status: int = 200, body: bytes = b"{}") -> MagicMock:
    """Build a mock ``aiohttp.ClientResponse`` usable as an async context manager."""
    response = MagicMock()
    response.status = status
    chunks = [body, b""]
    response.content.read = AsyncMock(side_effect=lambda _n: chunks.pop(0) if chunks else b"")
    response.__aenter__ = AsyncMock(return_value=response)
    response.__aexit__ = AsyncMock(return_value=None)
    return response


def _make_http_session(*responses: Any) -> MagicMock:
    """Build a mock ``aiohttp.ClientSession`` whose ``request`` yields *responses* in order.

    An exception instance in *responses* is raised by ``request`` instead.
    """
    session = MagicMock()
    session.closed = False
    session.close = AsyncMock()
    session.request = MagicMock(side_effect=list(responses))
    return session


@pytest.fixture
def make_response() -> Callable[..., MagicMock]:
    return _make_response


@pytest.fixture
def make_http_session() -> Callable[..., MagicMock]:
    return _make_http_session
