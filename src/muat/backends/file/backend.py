"""Async ``file://`` engine.

Wraps the blocking [FileStore][muat.backends.file.store.FileStore] with
``asyncio.to_thread`` so the event loop is never blocked by disk I/O, and
implements the same operation set as
[XrpcBackend][muat.backends.xrpc.backend.XrpcBackend]. Tokens are accepted
everywhere for signature parity and ignored: the engine has no
authorization model.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Final, Self

from muat.core.config import FileEngineConfig
from muat.core.exceptions import (
    InvalidCredentialsError,
    InvalidDidError,
    InvalidPdsUrlError,
    StorageIOError,
)
from muat.core.logger import Logger
from muat.models.at_uri import AtUri
from muat.models.auth import AccessToken, Credentials, LoginResult, RefreshToken
from muat.models.constants import BackendKind
from muat.models.did import Did
from muat.models.nsid import Nsid
from muat.models.pds_url import PdsUrl
from muat.models.record import CreateAccountOutput, ListRecordsOutput, LocalAccount, Record
from muat.models.record_value import RecordValue
from muat.models.rkey import Rkey
from muat.utils.passwords import verify_password
from muat.utils.streams import RepoEventStream

from .firehose import FirehoseTailer
from .store import FileStore


ACCESS_TOKEN_PREFIX: Final[str] = "local-access-"
REFRESH_TOKEN_PREFIX: Final[str] = "local-refresh-"

logger = Logger("muat.file")


def local_tokens(did: Did) -> tuple[AccessToken, RefreshToken]:
    """Placeholder token pair handed out by local logins."""
    return AccessToken(f"{ACCESS_TOKEN_PREFIX}{did}"), RefreshToken(f"{REFRESH_TOKEN_PREFIX}{did}")


class FileBackend:
    """Storage engine for a ``file://`` server root.

    Args:
        root: Server root directory.
        config: Engine settings; defaults apply when omitted.
    """

    kind: Final = BackendKind.FILE

    def __init__(self, root: Path, config: FileEngineConfig | None = None) -> None:
        self._config = config or FileEngineConfig()
        self.store = FileStore(
            root,
            default_list_limit=self._config.default_list_limit,
            scrypt_n=self._config.scrypt_n,
        )

    @classmethod
    def from_pds_url(cls, pds: PdsUrl, config: FileEngineConfig | None = None) -> Self:
        root = pds.to_file_path()
        if root is None:
            raise InvalidPdsUrlError(str(pds), "not a file:// URL")
        return cls(root, config)

    @property
    def root(self) -> Path:
        return self.store.root

    # -- Auth -------------------------------------------------------------

    async def login(self, credentials: Credentials) -> LoginResult:
        """Check a handle or DID and password against the stored account.

        Raises:
            InvalidCredentialsError: If the account is unknown or the
                password does not match.
        """
        account = await asyncio.to_thread(self._find_account, credentials.identifier)
        if account is None or account.password_hash is None:
            raise InvalidCredentialsError
        matched = await asyncio.to_thread(
            verify_password, credentials.password, account.password_hash
        )
        if not matched:
            raise InvalidCredentialsError

        access, refresh = local_tokens(account.did)
        logger.info("login_succeeded", did=str(account.did), backend="file")
        return LoginResult(did=account.did, handle=account.handle, access=access, refresh=refresh)

    def _find_account(self, identifier: str) -> LocalAccount | None:
        if identifier.startswith("did:"):
            try:
                did = Did(identifier)
            except InvalidDidError:
                return None
            return self.store.get_account(did)
        return self.store.find_account_by_handle(identifier)

    async def refresh_session(self, refresh: RefreshToken) -> LoginResult | None:
        """No-op: local tokens never expire. Always returns ``None``."""
        return None

    # -- Records ----------------------------------------------------------

    async def create_record(
        self,
        repo: Did,
        collection: Nsid,
        value: RecordValue,
        rkey: Rkey | None = None,
        *,
        token: AccessToken | None = None,
    ) -> AtUri:
        return await asyncio.to_thread(self.store.create_record, repo, collection, value, rkey)

    async def get_record(self, uri: AtUri, *, token: AccessToken | None = None) -> Record:
        return await asyncio.to_thread(self.store.get_record, uri)

    async def list_records(
        self,
        repo: Did,
        collection: Nsid,
        limit: int | None = None,
        cursor: str | None = None,
        *,
        token: AccessToken | None = None,
    ) -> ListRecordsOutput:
        return await asyncio.to_thread(self.store.list_records, repo, collection, limit, cursor)

    async def delete_record(self, uri: AtUri, *, token: AccessToken | None = None) -> None:
        await asyncio.to_thread(self.store.delete_record, uri)

    # -- Accounts ---------------------------------------------------------

    async def create_account(
        self,
        handle: str,
        password: str | None = None,
        email: str | None = None,
        invite_code: str | None = None,
    ) -> CreateAccountOutput:
        """Create a local account. *email* and *invite_code* are ignored."""
        account = await asyncio.to_thread(self.store.create_account, handle, password)
        return CreateAccountOutput(did=account.did, handle=account.handle)

    async def delete_account(
        self,
        did: Did,
        *,
        token: AccessToken | None = None,
        password: str | None = None,
    ) -> None:
        """Delete an account together with all of its records."""
        await self.remove_account(did, delete_records=True)

    async def remove_account(self, did: Did, *, delete_records: bool = False) -> None:
        await asyncio.to_thread(self.store.remove_account, did, delete_records=delete_records)

    async def get_account(self, did: Did) -> LocalAccount | None:
        return await asyncio.to_thread(self.store.get_account, did)

    async def list_accounts(self) -> list[LocalAccount]:
        return await asyncio.to_thread(self.store.list_accounts)

    # -- Firehose ---------------------------------------------------------

    async def firehose(self, cursor: int | None = None) -> RepoEventStream:
        """Tail the local log from its current end.

        *cursor* is accepted for parity with the network engine and ignored.
        """
        if cursor is not None:
            logger.debug("firehose_cursor_ignored", cursor=cursor)

        def prepare() -> FirehoseTailer:
            try:
                self.store.pds_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise StorageIOError(f"cannot create {self.store.pds_dir}: {e}") from e
            return FirehoseTailer(self.store.firehose, poll_interval=self._config.poll_interval)

        tailer = await asyncio.to_thread(prepare)
        return RepoEventStream(tailer.run, maxsize=self._config.channel_size, source=str(self.kind))

    async def close(self) -> None:
        """Nothing to release; present for parity with the network engine."""
