"""
Authenticated session: backend plus a shared, lock-protected token pair.

A [Session][muat.session.Session] is returned by
[Pds.login()][muat.pds.Pds.login] or rebuilt from persisted tokens with
[Session.from_persisted()][muat.session.Session.from_persisted]. It is a
thin handle over one shared state object: ``clone()`` (and
``copy.copy``) produce a second handle over the same state, so a refresh
through either handle is observed by both.

Token access is guarded by an
[RWLock][muat.utils.rwlock.RWLock]. Record operations take the lock in
shared mode only to snapshot the access token and release it before the
backend call, so a slow request never delays a refresh. ``refresh()``
holds it exclusively while it exchanges and swaps the token pair.

Examples:
    ```python
    pds = Pds.open("file://./data")
    session = await pds.login(Credentials("alice.local", "hunter2"))
    uri = await session.create_record(
        Nsid("org.test.record"),
        RecordValue({"$type": "org.test.record", "text": "hi"}),
    )
    record = await session.get_record(uri)
    ```
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Self

from muat.backends import Backend, open_backend
from muat.core.config import MuatConfig
from muat.core.exceptions import RefreshTokenInvalidError
from muat.core.logger import Logger
from muat.models.at_uri import AtUri
from muat.models.auth import AccessToken, RefreshToken
from muat.models.constants import BackendKind
from muat.models.did import Did
from muat.models.nsid import Nsid
from muat.models.pds_url import PdsUrl
from muat.models.record import ListRecordsOutput, Record
from muat.models.record_value import RecordValue
from muat.models.rkey import Rkey
from muat.utils.rwlock import RWLock
from muat.utils.streams import RepoEventStream


logger = Logger("muat.session")


@dataclass(slots=True)
class _SharedState:
    did: Did
    pds: PdsUrl
    backend: Backend
    access: AccessToken | None
    refresh: RefreshToken | None
    lock: RWLock = field(default_factory=RWLock)


class Session:
    """Handle to an authenticated session.

    Args:
        backend: Engine serving the session.
        did: Owner of the session; the repository written by ``create_record``.
        pds: Server address the session belongs to.
        access: Current access token.
        refresh: Current refresh token, if the server issued one.
    """

    __slots__ = ("_state",)

    def __init__(
        self,
        backend: Backend,
        did: Did,
        pds: PdsUrl,
        access: AccessToken | None,
        refresh: RefreshToken | None = None,
    ) -> None:
        self._state = _SharedState(
            did=did, pds=pds, backend=backend, access=access, refresh=refresh
        )

    @classmethod
    def _from_state(cls, state: _SharedState) -> Self:
        session = cls.__new__(cls)
        session._state = state
        return session

    @classmethod
    def from_persisted(
        cls,
        pds: PdsUrl,
        did: Did,
        access: AccessToken,
        refresh: RefreshToken | None = None,
        config: MuatConfig | None = None,
    ) -> Self:
        """Rebuild a session from previously exported tokens.

        No request is made; a stale access token is only detected by the
        first call that uses it.
        """
        return cls(open_backend(pds, config), did, pds, access, refresh)

    def clone(self) -> Self:
        """Another handle sharing this session's backend and tokens."""
        return self._from_state(self._state)

    __copy__ = clone

    # -- Identity ---------------------------------------------------------

    @property
    def did(self) -> Did:
        return self._state.did

    @property
    def pds(self) -> PdsUrl:
        return self._state.pds

    @property
    def backend(self) -> Backend:
        return self._state.backend

    @property
    def backend_kind(self) -> BackendKind:
        return self._state.backend.kind

    # -- Tokens -----------------------------------------------------------

    async def export_access_token(self) -> AccessToken | None:
        return await self._access_token()

    async def export_refresh_token(self) -> RefreshToken | None:
        async with self._state.lock.read():
            return self._state.refresh

    async def _access_token(self) -> AccessToken | None:
        async with self._state.lock.read():
            return self._state.access

    async def refresh(self) -> None:
        """Exchange the refresh token for a new token pair.

        A no-op for the file engine.

        Raises:
            RefreshTokenInvalidError: If the session holds no refresh token.
            ProtocolError: If the server rejects the refresh token.
        """
        state = self._state
        async with state.lock.write():
            if state.refresh is None:
                if state.backend.kind is BackendKind.FILE:
                    return
                raise RefreshTokenInvalidError
            result = await state.backend.refresh_session(state.refresh)
            if result is None:
                return
            state.access, state.refresh = result.access, result.refresh
        logger.info("session_refreshed", did=str(state.did))

    # -- Records ----------------------------------------------------------

    async def create_record(
        self,
        collection: Nsid,
        value: RecordValue,
        rkey: Rkey | None = None,
    ) -> AtUri:
        """Create a record in this session's repository."""
        token = await self._access_token()
        return await self._state.backend.create_record(
            self._state.did, collection, value, rkey, token=token
        )

    async def create_record_raw(
        self,
        collection: Nsid,
        value: Any,
        rkey: Rkey | None = None,
    ) -> AtUri:
        """Create a record from an untyped JSON object.

        Raises:
            InvalidRecordValueError: If *value* is not an object with a
                string ``$type``.
        """
        return await self.create_record(collection, RecordValue(value), rkey)

    async def get_record(self, uri: AtUri) -> Record:
        token = await self._access_token()
        return await self._state.backend.get_record(uri, token=token)

    async def list_records(
        self,
        repo: Did,
        collection: Nsid,
        limit: int | None = None,
        cursor: str | None = None,
    ) -> ListRecordsOutput:
        token = await self._access_token()
        return await self._state.backend.list_records(
            repo, collection, limit, cursor, token=token
        )

    async def delete_record(self, uri: AtUri) -> None:
        token = await self._access_token()
        await self._state.backend.delete_record(uri, token=token)

    # -- Firehose ---------------------------------------------------------

    async def firehose(self) -> RepoEventStream:
        """Live repository events from now on."""
        return await self._state.backend.firehose()

    async def firehose_from(self, cursor: int) -> RepoEventStream:
        """Repository events resuming after *cursor* (ignored by the file engine)."""
        return await self._state.backend.firehose(cursor)

    async def close(self) -> None:
        """Release the backend's network resources, if any."""
        await self._state.backend.close()

    def __repr__(self) -> str:
        return (
            f"Session(did={str(self.did)!r}, pds={str(self.pds)!r}, "
            f"backend={str(self.backend_kind)!r}, tokens=[REDACTED])"
        )
