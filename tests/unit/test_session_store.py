"""
Unit tests for session_store module.

Tests:
- Saving writes a 0600 JSON file with raw tokens
- Loading rebuilds the session and tries a refresh
- Invalid files are reported as ConfigurationError
- Clearing the stored session
"""

import json
import stat
from unittest.mock import AsyncMock, patch

import pytest

from muat.backends.file import local_tokens
from muat.core.exceptions import ConfigurationError, RefreshTokenInvalidError, StorageIOError
from muat.models import AccessToken, BackendKind, PdsUrl, RefreshToken
from muat.session import Session
from muat.session_store import clear_session, load_session, save_session


@pytest.fixture
def session(file_backend, did, tmp_path) -> Session:
    access, refresh = local_tokens(did)
    return Session(file_backend, did, PdsUrl(f"file://{tmp_path}"), access, refresh)


@pytest.fixture
def path(tmp_path):
    return tmp_path / "state" / "session.json"


class TestSave:
    """Writing the session file."""

    async def test_contents(self, session, path, did):
        await save_session(session, path)
        data = json.loads(path.read_text())
        assert data == {
            "did": str(did),
            "pds": str(session.pds),
            "access_token": f"local-access-{did}",
            "refresh_token": f"local-refresh-{did}",
        }

    async def test_mode(self, session, path):
        await save_session(session, path)
        assert stat.S_IMODE(path.stat().st_mode) == 0o600

    async def test_without_refresh_token(self, file_backend, did, path, tmp_path):
        session = Session(file_backend, did, PdsUrl(f"file://{tmp_path}"), AccessToken("a"))
        await save_session(session, path)
        assert json.loads(path.read_text())["refresh_token"] is None

    async def test_unwritable(self, session, tmp_path):
        blocker = tmp_path / "state"
        blocker.write_text("not a directory")
        with pytest.raises(StorageIOError):
            await save_session(session, blocker / "session.json")


class TestLoad:
    """Restoring the session file."""

    async def test_missing(self, path):
        assert await load_session(path) is None

    async def test_round_trip(self, session, path, did):
        await save_session(session, path)
        loaded = await load_session(path)
        assert loaded.did == did
        assert loaded.pds == session.pds
        assert loaded.backend_kind is BackendKind.FILE
        assert (await loaded.export_access_token()).expose() == f"local-access-{did}"

    @pytest.mark.parametrize(
        "text",
        [
            "not json",
            "[]",
            '{"did": "did:plc:abc", "access_token": "a"}',
            '{"did": "nope", "pds": "https://pds.example", "access_token": "a"}',
            '{"did": "did:plc:abc", "pds": "ftp://x", "access_token": "a"}',
            '{"did": "did:plc:abc", "pds": "https://pds.example", "access_token": 5}',
        ],
    )
    async def test_invalid(self, path, text):
        path.parent.mkdir(parents=True)
        path.write_text(text)
        with pytest.raises(ConfigurationError):
            await load_session(path)

    async def test_refresh_failure_keeps_stored_tokens(self, path):
        path.parent.mkdir(parents=True)
        path.write_text(
            json.dumps(
                {
                    "did": "did:plc:abc",
                    "pds": "https://pds.example",
                    "access_token": "stale",
                    "refresh_token": "r",
                }
            )
        )
        with patch.object(
            Session, "refresh", AsyncMock(side_effect=RefreshTokenInvalidError)
        ) as refresh:
            loaded = await load_session(path)
        refresh.assert_awaited_once()
        assert loaded.backend_kind is BackendKind.XRPC
        assert await loaded.export_access_token() == AccessToken("stale")
        assert await loaded.export_refresh_token() == RefreshToken("r")
        await loaded.close()


class TestClear:
    """Forgetting the session."""

    async def test_clear(self, session, path):
        await save_session(session, path)
        assert clear_session(path) is True
        assert not path.exists()

    def test_clear_missing(self, path):
        assert clear_session(path) is False
