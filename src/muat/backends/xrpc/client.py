"""
Low-level XRPC client over aiohttp.

XRPC is HTTP with two call shapes: *queries* are ``GET`` requests with URL
parameters, *procedures* are ``POST`` requests with a JSON body. Both live
under ``<server>/xrpc/<method>``. Authenticated calls carry
``Authorization: Bearer <token>``.

Every response body is read through
[read_bounded][muat.utils.http.read_bounded] with the configured size
limit. Failures are translated into the library's error families:

* error status with a JSON ``{"error", "message"}`` body, or any other
  error status -> [ProtocolError][muat.core.exceptions.ProtocolError];
* certificate and TLS failures -> [TlsError][muat.core.exceptions.TlsError];
* name resolution failures -> [DnsError][muat.core.exceptions.DnsError];
* other connect failures ->
  [ConnectionFailedError][muat.core.exceptions.ConnectionFailedError];
* deadline exceeded ->
  [RequestTimeoutError][muat.core.exceptions.RequestTimeoutError];
* everything else aiohttp raises, and undecodable success bodies ->
  [HttpError][muat.core.exceptions.HttpError].

The underlying ``aiohttp.ClientSession`` is created lazily on first use
(inside the running loop) and released by ``close()``. A SOCKS or HTTP
proxy is used when ``XrpcConfig.proxy_url`` is set.
"""

from __future__ import annotations

import json
import time
from collections.abc import Mapping
from types import TracebackType
from typing import Any, Self

import aiohttp
from aiohttp_socks import ProxyConnector

from muat.core.config import XrpcConfig
from muat.core.exceptions import (
    ConnectionFailedError,
    DnsError,
    HttpError,
    ProtocolError,
    RequestTimeoutError,
    TlsError,
)
from muat.core.logger import Logger
from muat.core.metrics import XRPC_REQUEST_DURATION_SECONDS, XRPC_REQUESTS
from muat.models.pds_url import PdsUrl
from muat.utils.http import read_bounded

from . import endpoints


logger = Logger("muat.xrpc")


def _query_params(params: Mapping[str, Any] | None) -> dict[str, str]:
    """Drop ``None`` values and render the rest as URL parameter strings."""
    result: dict[str, str] = {}
    for key, value in (params or {}).items():
        if value is None:
            continue
        if isinstance(value, bool):
            result[key] = "true" if value else "false"
        else:
            result[key] = str(value)
    return result


def _compact(body: Mapping[str, Any]) -> dict[str, Any]:
    """Drop ``None`` values from a procedure body."""
    return {key: value for key, value in body.items() if value is not None}


def _protocol_error(status: int, body: bytes) -> ProtocolError:
    """Build the error for a non-success response from its (possibly empty) body."""
    try:
        data = json.loads(body) if body else None
    except ValueError:
        data = None
    if isinstance(data, dict):
        error = data.get("error")
        message = data.get("message")
        return ProtocolError(
            status,
            error if isinstance(error, str) else None,
            message if isinstance(message, str) else None,
        )
    return ProtocolError(status)


class XrpcClient:
    """Async XRPC client bound to one server.

    Args:
        pds: Network server address.
        config: Timeout, response limit, user agent and proxy settings.
        session: Externally owned ``aiohttp.ClientSession``. When given, the
            client never closes it.

    Examples:
        ```python
        async with XrpcClient(PdsUrl("https://bsky.social")) as client:
            data = await client.create_session("alice.test", "hunter2")
        ```
    """

    def __init__(
        self,
        pds: PdsUrl,
        config: XrpcConfig | None = None,
        *,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.pds = pds
        self.config = config or XrpcConfig()
        self._session = session
        self._owns_session = session is None

    # -- Session lifecycle ------------------------------------------------

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            connector: aiohttp.BaseConnector | None = None
            if self.config.proxy_url:
                connector = ProxyConnector.from_url(self.config.proxy_url)
            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=aiohttp.ClientTimeout(total=self.config.timeout),
                headers={"User-Agent": self.config.user_agent},
            )
            self._owns_session = True
        return self._session

    @property
    def session(self) -> aiohttp.ClientSession:
        """The underlying HTTP session, created on first access."""
        return self._ensure_session()

    async def close(self) -> None:
        """Close the HTTP session if this client created it. Idempotent."""
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    # -- Transport --------------------------------------------------------

    async def _request(
        self,
        http_method: str,
        method: str,
        *,
        params: Mapping[str, Any] | None = None,
        body: Mapping[str, Any] | None = None,
        token: str | None = None,
        expect_body: bool = True,
    ) -> Any:
        url = self.pds.xrpc_url(method)
        headers: dict[str, str] = {}
        if token is not None:
            headers["Authorization"] = f"Bearer {token}"

        outcome = "ok"
        start = time.monotonic()
        try:
            async with self._ensure_session().request(
                http_method,
                url,
                params=_query_params(params),
                json=_compact(body) if body is not None else None,
                headers=headers,
            ) as response:
                try:
                    raw = await read_bounded(response, self.config.max_response_size)
                except ValueError as e:
                    raise HttpError(str(e)) from e

                if response.status >= 400:  # noqa: PLR2004
                    error = _protocol_error(response.status, raw)
                    outcome = "auth_error" if error.is_auth_error else "protocol_error"
                    raise error

                if not expect_body:
                    return None
                try:
                    return json.loads(raw)
                except ValueError as e:
                    raise HttpError(f"invalid JSON response from {method}: {e}") from e

        except ProtocolError:
            raise
        except HttpError:
            outcome = "transport_error"
            raise
        except aiohttp.ClientSSLError as e:
            outcome = "transport_error"
            raise TlsError(str(e)) from e
        except aiohttp.ClientConnectorDNSError as e:
            outcome = "transport_error"
            raise DnsError(e.host) from e
        except aiohttp.ClientConnectorError as e:
            outcome = "transport_error"
            raise ConnectionFailedError(str(e)) from e
        except TimeoutError as e:
            outcome = "transport_error"
            raise RequestTimeoutError(int((time.monotonic() - start) * 1000)) from e
        except aiohttp.ClientError as e:
            outcome = "transport_error"
            raise HttpError(str(e)) from e
        finally:
            elapsed = time.monotonic() - start
            XRPC_REQUESTS.labels(method=method, outcome=outcome).inc()
            XRPC_REQUEST_DURATION_SECONDS.labels(method=method).observe(elapsed)
            logger.debug(
                "xrpc_request",
                method=method,
                http=http_method,
                outcome=outcome,
                elapsed_ms=int(elapsed * 1000),
            )

    # -- Call shapes ------------------------------------------------------

    async def query(self, method: str, params: Mapping[str, Any] | None = None) -> Any:
        """Unauthenticated ``GET``."""
        return await self._request("GET", method, params=params)

    async def query_authed(
        self, method: str, params: Mapping[str, Any] | None, token: str
    ) -> Any:
        """Authenticated ``GET``."""
        return await self._request("GET", method, params=params, token=token)

    async def procedure(self, method: str, body: Mapping[str, Any]) -> Any:
        """Unauthenticated ``POST`` with a JSON body and a JSON response."""
        return await self._request("POST", method, body=body)

    async def procedure_authed(self, method: str, body: Mapping[str, Any], token: str) -> Any:
        """Authenticated ``POST`` with a JSON body and a JSON response."""
        return await self._request("POST", method, body=body, token=token)

    async def procedure_authed_no_response(
        self, method: str, body: Mapping[str, Any], token: str
    ) -> None:
        """Authenticated ``POST`` whose response body is discarded."""
        await self._request("POST", method, body=body, token=token, expect_body=False)

    async def procedure_authed_no_body(self, method: str, token: str) -> Any:
        """Authenticated ``POST`` without a request body."""
        return await self._request("POST", method, token=token)

    # -- Typed endpoints --------------------------------------------------

    async def create_session(self, identifier: str, password: str) -> Any:
        return await self.procedure(
            endpoints.CREATE_SESSION, {"identifier": identifier, "password": password}
        )

    async def refresh_session(self, refresh_token: str) -> Any:
        """Exchange a refresh token (sent as the bearer) for a new token pair."""
        return await self.procedure_authed_no_body(endpoints.REFRESH_SESSION, refresh_token)

    async def get_session(self, access_token: str) -> Any:
        return await self.query_authed(endpoints.GET_SESSION, None, access_token)

    async def create_record(
        self,
        token: str,
        repo: str,
        collection: str,
        record: Mapping[str, Any],
        rkey: str | None = None,
        validate: bool | None = None,
    ) -> Any:
        return await self.procedure_authed(
            endpoints.CREATE_RECORD,
            {
                "repo": repo,
                "collection": collection,
                "record": record,
                "rkey": rkey,
                "validate": validate,
            },
            token,
        )

    async def get_record(
        self,
        repo: str,
        collection: str,
        rkey: str,
        cid: str | None = None,
        token: str | None = None,
    ) -> Any:
        params = {"repo": repo, "collection": collection, "rkey": rkey, "cid": cid}
        if token is None:
            return await self.query(endpoints.GET_RECORD, params)
        return await self.query_authed(endpoints.GET_RECORD, params, token)

    async def list_records(
        self,
        repo: str,
        collection: str,
        limit: int | None = None,
        cursor: str | None = None,
        reverse: bool | None = None,
        token: str | None = None,
    ) -> Any:
        params = {
            "repo": repo,
            "collection": collection,
            "limit": limit,
            "cursor": cursor,
            "reverse": reverse,
        }
        if token is None:
            return await self.query(endpoints.LIST_RECORDS, params)
        return await self.query_authed(endpoints.LIST_RECORDS, params, token)

    async def delete_record(
        self,
        token: str,
        repo: str,
        collection: str,
        rkey: str,
        swap_record: str | None = None,
        swap_commit: str | None = None,
    ) -> None:
        await self.procedure_authed_no_response(
            endpoints.DELETE_RECORD,
            {
                "repo": repo,
                "collection": collection,
                "rkey": rkey,
                "swapRecord": swap_record,
                "swapCommit": swap_commit,
            },
            token,
        )

    async def create_account(
        self,
        handle: str,
        password: str | None = None,
        email: str | None = None,
        invite_code: str | None = None,
    ) -> Any:
        return await self.procedure(
            endpoints.CREATE_ACCOUNT,
            {"handle": handle, "password": password, "email": email, "inviteCode": invite_code},
        )

    async def delete_account(self, token: str, did: str, password: str) -> None:
        await self.procedure_authed_no_response(
            endpoints.DELETE_ACCOUNT,
            {"did": did, "password": password, "token": token},
            token,
        )
