"""
Unit tests for session module.

Tests:
- Shared state between cloned handles
- Token refresh on both engines
- Record operations forwarding the current access token
- Token redaction in repr
"""

import asyncio
import copy
from unittest.mock import AsyncMock, MagicMock

import pytest

from muat.backends.file import local_tokens
from muat.core.exceptions import InvalidRecordValueError, RefreshTokenInvalidError
from muat.models import (
    AccessToken,
    AtUri,
    BackendKind,
    Did,
    ListRecordsOutput,
    LoginResult,
    PdsUrl,
    RefreshToken,
    Rkey,
)
from muat.session import Session


PDS = PdsUrl("https://pds.example")


def _mock_backend(kind: BackendKind = BackendKind.XRPC) -> MagicMock:
    backend = MagicMock()
    backend.kind = kind
    backend.close = AsyncMock()
    return backend


@pytest.fixture
def file_session(file_backend, did, tmp_path):
    access, refresh = local_tokens(did)
    return Session(file_backend, did, PdsUrl(f"file://{tmp_path}"), access, refresh)


# =============================================================================
# Identity and state sharing
# =============================================================================


class TestIdentity:
    """Accessors and clone semantics."""

    def test_accessors(self, file_session, did, file_backend):
        assert file_session.did == did
        assert file_session.backend is file_backend
        assert file_session.backend_kind is BackendKind.FILE

    async def test_clone_shares_tokens(self, did):
        backend = _mock_backend()
        backend.refresh_session = AsyncMock(
            return_value=LoginResult(did, "alice.test", AccessToken("a2"), RefreshToken("r2"))
        )
        session = Session(backend, did, PDS, AccessToken("a1"), RefreshToken("r1"))
        other = session.clone()

        await other.refresh()

        assert (await session.export_access_token()).expose() == "a2"
        assert (await session.export_refresh_token()).expose() == "r2"

    def test_copy_is_clone(self, file_session):
        other = copy.copy(file_session)
        assert other is not file_session
        assert other._state is file_session._state

    def test_repr_redacts_tokens(self, did):
        session = Session(_mock_backend(), did, PDS, AccessToken("secret-access"))
        text = repr(session)
        assert "secret-access" not in text
        assert "[REDACTED]" in text
        assert "backend='xrpc'" in text

    def test_from_persisted_selects_engine(self, did, tmp_path):
        session = Session.from_persisted(PdsUrl(f"file://{tmp_path}"), did, AccessToken("a"))
        assert session.backend_kind is BackendKind.FILE


# =============================================================================
# Refresh
# =============================================================================


class TestRefresh:
    """Token pair exchange."""

    async def test_file_engine_noop(self, file_session):
        before = await file_session.export_access_token()
        await file_session.refresh()
        assert await file_session.export_access_token() == before

    async def test_file_engine_without_refresh_token(self, file_backend, did, tmp_path):
        session = Session(file_backend, did, PdsUrl(f"file://{tmp_path}"), AccessToken("a"))
        await session.refresh()
        assert await session.export_refresh_token() is None

    async def test_network_without_refresh_token(self, did):
        backend = _mock_backend()
        backend.refresh_session = AsyncMock()
        session = Session(backend, did, PDS, AccessToken("a"))
        with pytest.raises(RefreshTokenInvalidError):
            await session.refresh()
        backend.refresh_session.assert_not_awaited()

    async def test_sends_current_refresh_token(self, did):
        backend = _mock_backend()
        backend.refresh_session = AsyncMock(
            return_value=LoginResult(did, "alice.test", AccessToken("a2"), RefreshToken("r2"))
        )
        session = Session(backend, did, PDS, AccessToken("a1"), RefreshToken("r1"))
        await session.refresh()
        assert backend.refresh_session.await_args.args[0] == RefreshToken("r1")

    async def test_failure_keeps_tokens(self, did):
        backend = _mock_backend()
        backend.refresh_session = AsyncMock(side_effect=RefreshTokenInvalidError)
        session = Session(backend, did, PDS, AccessToken("a1"), RefreshToken("r1"))
        with pytest.raises(RefreshTokenInvalidError):
            await session.refresh()
        assert (await session.export_access_token()).expose() == "a1"


# =============================================================================
# Records
# =============================================================================


class TestRecords:
    """Record operations through the session."""

    async def test_file_round_trip(self, file_session, did, collection, record_value):
        uri = await file_session.create_record(collection, record_value, Rkey("k1"))
        assert uri == AtUri(did, collection, Rkey("k1"))
        assert (await file_session.get_record(uri)).value == record_value

        page = await file_session.list_records(did, collection)
        assert [r.uri for r in page.records] == [uri]

        await file_session.delete_record(uri)
        page = await file_session.list_records(did, collection)
        assert page.records == ()

    async def test_create_record_raw(self, file_session, collection):
        uri = await file_session.create_record_raw(
            collection, {"$type": "org.test.record", "n": 1}
        )
        assert (await file_session.get_record(uri)).value.get("n") == 1

    @pytest.mark.parametrize("value", [[], {"n": 1}, {"$type": 3}])
    async def test_create_record_raw_invalid(self, file_session, collection, value):
        with pytest.raises(InvalidRecordValueError):
            await file_session.create_record_raw(collection, value)

    async def test_passes_access_token(self, did, collection):
        backend = _mock_backend()
        backend.list_records = AsyncMock(return_value=ListRecordsOutput())
        session = Session(backend, did, PDS, AccessToken("a1"))

        await session.list_records(Did("did:plc:other"), collection, limit=5)

        args = backend.list_records.await_args
        assert args.args == (Did("did:plc:other"), collection, 5, None)
        assert args.kwargs == {"token": AccessToken("a1")}

    async def test_slow_call_does_not_block_refresh(self, did, collection):
        entered = asyncio.Event()
        release = asyncio.Event()

        async def slow_list(*args, **kwargs):
            entered.set()
            await release.wait()
            return ListRecordsOutput()

        backend = _mock_backend()
        backend.list_records = AsyncMock(side_effect=slow_list)
        backend.refresh_session = AsyncMock(
            return_value=LoginResult(did, "alice.test", AccessToken("a2"), RefreshToken("r2"))
        )
        session = Session(backend, did, PDS, AccessToken("a1"), RefreshToken("r1"))

        pending = asyncio.create_task(session.list_records(did, collection))
        await asyncio.wait_for(entered.wait(), timeout=5)
        try:
            await asyncio.wait_for(session.refresh(), timeout=5)
            assert (await session.export_access_token()).expose() == "a2"
            assert not pending.done()
        finally:
            release.set()
            await pending

        assert backend.list_records.await_args.kwargs == {"token": AccessToken("a1")}

    async def test_firehose_from_forwards_cursor(self, did):
        backend = _mock_backend()
        backend.firehose = AsyncMock(return_value="stream")
        session = Session(backend, did, PDS, AccessToken("a1"))
        assert await session.firehose_from(12) == "stream"
        backend.firehose.assert_awaited_once_with(12)

    async def test_close(self, did):
        backend = _mock_backend()
        await Session(backend, did, PDS, AccessToken("a1")).close()
        backend.close.assert_awaited_once()
