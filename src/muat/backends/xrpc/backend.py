"""Async network engine speaking XRPC to a remote server.

Translates between the library's models and the JSON shapes of the
``com.atproto.*`` endpoints, delegating HTTP to
[XrpcClient][muat.backends.xrpc.client.XrpcClient]. Record and account
operations require an access token; calling them without one raises
[SessionExpiredError][muat.core.exceptions.SessionExpiredError] before any
request is sent.

A success response that does not have the expected shape is reported as
[HttpError][muat.core.exceptions.HttpError].
"""

from __future__ import annotations

from typing import Any, Final, Self

import aiohttp

from muat.core.config import XrpcConfig
from muat.core.exceptions import (
    HttpError,
    InvalidCredentialsError,
    InvalidInputError,
    InvalidPdsUrlError,
    SessionExpiredError,
)
from muat.core.logger import Logger
from muat.models.at_uri import AtUri
from muat.models.auth import AccessToken, Credentials, LoginResult, RefreshToken
from muat.models.constants import BackendKind
from muat.models.did import Did
from muat.models.nsid import Nsid
from muat.models.pds_url import PdsUrl
from muat.models.record import CreateAccountOutput, ListRecordsOutput, Record
from muat.models.record_value import RecordValue
from muat.models.rkey import Rkey
from muat.utils.streams import EventSink, RepoEventStream

from . import endpoints, subscription
from .client import XrpcClient


logger = Logger("muat.xrpc")


def _field(data: Any, key: str, method: str, kind: type = str) -> Any:
    if not isinstance(data, dict):
        raise HttpError(f"malformed {method} response: expected an object")
    value = data.get(key)
    if not isinstance(value, kind):
        raise HttpError(f"malformed {method} response: missing or invalid '{key}'")
    return value


def _parse_login(data: Any, method: str) -> LoginResult:
    try:
        return LoginResult(
            did=Did(_field(data, "did", method)),
            handle=_field(data, "handle", method),
            access=AccessToken(_field(data, "accessJwt", method)),
            refresh=RefreshToken(_field(data, "refreshJwt", method)),
        )
    except InvalidInputError as e:
        raise HttpError(f"malformed {method} response: {e}") from e


def _parse_record(data: Any, method: str) -> Record:
    try:
        return Record(
            uri=AtUri.parse(_field(data, "uri", method)),
            cid=_field(data, "cid", method),
            value=RecordValue(_field(data, "value", method, dict)),
        )
    except InvalidInputError as e:
        raise HttpError(f"malformed {method} response: {e}") from e


def _require_token(token: AccessToken | None) -> str:
    if token is None:
        raise SessionExpiredError
    return token.expose()


class XrpcBackend:
    """Storage engine for an ``https://`` (or loopback ``http://``) server.

    Args:
        pds: Network server address.
        config: Client settings; defaults apply when omitted.
        session: Optional externally owned ``aiohttp.ClientSession``.
    """

    kind: Final = BackendKind.XRPC

    def __init__(
        self,
        pds: PdsUrl,
        config: XrpcConfig | None = None,
        *,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        if not pds.is_network:
            raise InvalidPdsUrlError(str(pds), "not a network URL")
        self.pds = pds
        self.config = config or XrpcConfig()
        self.client = XrpcClient(pds, self.config, session=session)

    @classmethod
    def from_pds_url(cls, pds: PdsUrl, config: XrpcConfig | None = None) -> Self:
        return cls(pds, config)

    # -- Auth -------------------------------------------------------------

    async def login(self, credentials: Credentials) -> LoginResult:
        """Create a session on the server.

        Rejected credentials surface as the server's
        [ProtocolError][muat.core.exceptions.ProtocolError] (typically 401).
        """
        data = await self.client.create_session(credentials.identifier, credentials.password)
        result = _parse_login(data, endpoints.CREATE_SESSION)
        logger.info("login_succeeded", did=str(result.did), backend="xrpc", pds=str(self.pds))
        return result

    async def refresh_session(self, refresh: RefreshToken) -> LoginResult:
        """Exchange *refresh* for a new token pair."""
        data = await self.client.refresh_session(refresh.expose())
        return _parse_login(data, endpoints.REFRESH_SESSION)

    async def get_session(self, token: AccessToken | None) -> tuple[Did, str]:
        """Return the DID and handle the server associates with *token*."""
        data = await self.client.get_session(_require_token(token))
        try:
            did = Did(_field(data, "did", endpoints.GET_SESSION))
        except InvalidInputError as e:
            raise HttpError(f"malformed {endpoints.GET_SESSION} response: {e}") from e
        return did, _field(data, "handle", endpoints.GET_SESSION)

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
        data = await self.client.create_record(
            _require_token(token),
            str(repo),
            str(collection),
            value.to_dict(),
            rkey=str(rkey) if rkey is not None else None,
        )
        try:
            return AtUri.parse(_field(data, "uri", endpoints.CREATE_RECORD))
        except InvalidInputError as e:
            raise HttpError(f"malformed {endpoints.CREATE_RECORD} response: {e}") from e

    async def get_record(self, uri: AtUri, *, token: AccessToken | None = None) -> Record:
        data = await self.client.get_record(
            str(uri.repo),
            str(uri.collection),
            str(uri.rkey),
            token=_require_token(token),
        )
        return _parse_record(data, endpoints.GET_RECORD)

    async def list_records(
        self,
        repo: Did,
        collection: Nsid,
        limit: int | None = None,
        cursor: str | None = None,
        *,
        token: AccessToken | None = None,
    ) -> ListRecordsOutput:
        data = await self.client.list_records(
            str(repo),
            str(collection),
            limit=limit,
            cursor=cursor,
            token=_require_token(token),
        )
        items = _field(data, "records", endpoints.LIST_RECORDS, list)
        next_cursor = data.get("cursor")
        return ListRecordsOutput(
            records=tuple(_parse_record(item, endpoints.LIST_RECORDS) for item in items),
            cursor=next_cursor if isinstance(next_cursor, str) else None,
        )

    async def delete_record(self, uri: AtUri, *, token: AccessToken | None = None) -> None:
        await self.client.delete_record(
            _require_token(token), str(uri.repo), str(uri.collection), str(uri.rkey)
        )

    # -- Accounts ---------------------------------------------------------

    async def create_account(
        self,
        handle: str,
        password: str | None = None,
        email: str | None = None,
        invite_code: str | None = None,
    ) -> CreateAccountOutput:
        data = await self.client.create_account(handle, password, email, invite_code)
        result = _parse_login(data, endpoints.CREATE_ACCOUNT)
        logger.info("account_created", did=str(result.did), handle=result.handle)
        return CreateAccountOutput(did=result.did, handle=result.handle)

    async def delete_account(
        self,
        did: Did,
        *,
        token: AccessToken | None = None,
        password: str | None = None,
    ) -> None:
        """Delete an account on the server.

        Raises:
            SessionExpiredError: If *token* is missing.
            InvalidCredentialsError: If *password* is missing.
        """
        raw_token = _require_token(token)
        if password is None:
            raise InvalidCredentialsError("password is required to delete an account")
        await self.client.delete_account(raw_token, str(did), password)
        logger.info("account_deleted", did=str(did))

    # -- Firehose ---------------------------------------------------------

    async def firehose(self, cursor: int | None = None) -> RepoEventStream:
        """Connect to the repository event stream, optionally resuming after *cursor*.

        Raises:
            ConnectionFailedError: If the WebSocket handshake fails.
        """
        url = subscription.subscribe_url(self.pds, cursor)
        ws = await subscription.connect(self.client.session, url)
        logger.info("subscription_connected", url=url)

        async def produce(send: EventSink) -> None:
            await subscription.pump(ws, send)

        return RepoEventStream(produce, maxsize=self.config.channel_size, source=str(self.kind))

    async def close(self) -> None:
        await self.client.close()
