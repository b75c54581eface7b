"""
Unit tests for pds module.
"""

from unittest.mock import AsyncMock, patch

import pytest

from muat.core.config import FileEngineConfig, MuatConfig
from muat.core.exceptions import InvalidCredentialsError, InvalidPdsUrlError
from muat.models import BackendKind, Credentials, PdsUrl
from muat.pds import Pds
from muat.session import Session


@pytest.fixture
def config(file_config: FileEngineConfig) -> MuatConfig:
    return MuatConfig(file=file_config)


@pytest.fixture
def pds(tmp_path, config) -> Pds:
    return Pds.open(f"file://{tmp_path}", config)


class TestOpen:
    """Engine selection from the address."""

    def test_file_address(self, pds, tmp_path):
        assert pds.kind is BackendKind.FILE
        assert pds.url == PdsUrl(f"file://{tmp_path}")

    def test_network_address(self):
        assert Pds.open("https://pds.example").kind is BackendKind.XRPC

    def test_accepts_parsed_url(self, tmp_path):
        url = PdsUrl(f"file://{tmp_path}")
        assert Pds.open(url).url is url

    def test_invalid_address(self):
        with pytest.raises(InvalidPdsUrlError):
            Pds.open("ftp://pds.example")

    def test_repr(self, pds):
        assert repr(pds).endswith("kind='file')")


class TestAccounts:
    """Login and account lifecycle on the file engine."""

    async def test_login_returns_session(self, pds):
        created = await pds.create_account("alice.local", password="hunter2")
        session = await pds.login(Credentials("alice.local", "hunter2"))
        assert isinstance(session, Session)
        assert session.did == created.did
        assert session.pds == pds.url
        assert session.backend is pds.backend

    async def test_login_wrong_password(self, pds):
        await pds.create_account("alice.local", password="hunter2")
        with pytest.raises(InvalidCredentialsError):
            await pds.login(Credentials("alice.local", "nope"))

    async def test_delete_account(self, pds):
        created = await pds.create_account("alice.local", password="hunter2")
        await pds.delete_account(created.did)
        with pytest.raises(InvalidCredentialsError):
            await pds.login(Credentials("alice.local", "hunter2"))

    async def test_firehose_from(self, pds):
        stream = await pds.firehose_from(None)
        await stream.aclose()
        assert stream.closed


class TestLifecycle:
    """Async context manager."""

    async def test_closes_backend(self, pds):
        with patch.object(pds.backend, "close", AsyncMock()) as close:
            async with pds as opened:
                assert opened is pds
        close.assert_awaited_once()
