"""Entry point to a server: open by address, then log in or manage accounts."""

from __future__ import annotations

from types import TracebackType
from typing import Self

from muat.backends import Backend, open_backend
from muat.core.config import MuatConfig
from muat.core.logger import Logger
from muat.models.auth import AccessToken, Credentials
from muat.models.constants import BackendKind
from muat.models.did import Did
from muat.models.pds_url import PdsUrl
from muat.models.record import CreateAccountOutput
from muat.session import Session
from muat.utils.streams import RepoEventStream


logger = Logger("muat.pds")


class Pds:
    """A server handle bound to the engine its address selects.

    ``file://`` addresses are served by the file engine; ``https://`` (and
    loopback ``http://``) addresses by the network engine.

    Examples:
        ```python
        async with Pds.open("file://./data") as pds:
            await pds.create_account("alice.local", password="hunter2")
            session = await pds.login(Credentials("alice.local", "hunter2"))
        ```
    """

    def __init__(self, url: PdsUrl, config: MuatConfig | None = None) -> None:
        self._url = url
        self._config = config or MuatConfig()
        self._backend = open_backend(url, self._config)

    @classmethod
    def open(cls, url: PdsUrl | str, config: MuatConfig | None = None) -> Self:
        """Open a server by address.

        Raises:
            InvalidPdsUrlError: If *url* is a string that does not parse.
        """
        return cls(url if isinstance(url, PdsUrl) else PdsUrl(url), config)

    @property
    def url(self) -> PdsUrl:
        return self._url

    @property
    def backend(self) -> Backend:
        return self._backend

    @property
    def kind(self) -> BackendKind:
        return self._backend.kind

    async def login(self, credentials: Credentials) -> Session:
        """Authenticate and return a session sharing this handle's backend.

        Raises:
            InvalidCredentialsError: Unknown account or wrong password (file engine).
            ProtocolError: The server rejected the credentials (network engine).
        """
        result = await self._backend.login(credentials)
        return Session(self._backend, result.did, self._url, result.access, result.refresh)

    async def create_account(
        self,
        handle: str,
        password: str | None = None,
        email: str | None = None,
        invite_code: str | None = None,
    ) -> CreateAccountOutput:
        return await self._backend.create_account(handle, password, email, invite_code)

    async def delete_account(
        self,
        did: Did,
        token: AccessToken | None = None,
        password: str | None = None,
    ) -> None:
        """Delete an account. The file engine also removes all of its records."""
        await self._backend.delete_account(did, token=token, password=password)

    async def firehose(self) -> RepoEventStream:
        return await self._backend.firehose()

    async def firehose_from(self, cursor: int | None) -> RepoEventStream:
        return await self._backend.firehose(cursor)

    async def close(self) -> None:
        await self._backend.close()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"Pds(url={str(self._url)!r}, kind={str(self.kind)!r})"
