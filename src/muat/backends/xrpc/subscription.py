"""
WebSocket subscription to ``com.atproto.sync.subscribeRepos``.

The endpoint streams binary frames encoded as DAG-CBOR. Frames are not
decoded: each binary frame is surfaced as an
[UnknownEvent][muat.models.events.UnknownEvent] whose kind carries the
first bytes in hex, which is enough to observe liveness and volume.

Message handling:

* binary: one event per frame;
* ping: answered with a pong carrying the same payload;
* close: ends the stream normally;
* text and pong: ignored;
* error: raises [ConnectionFailedError][muat.core.exceptions.ConnectionFailedError].
"""

from __future__ import annotations

from typing import Final

import aiohttp

from muat.core.exceptions import ConnectionFailedError
from muat.core.logger import Logger
from muat.models.events import UnknownEvent
from muat.models.pds_url import PdsUrl
from muat.utils.streams import EventSink

from . import endpoints


FRAME_PREVIEW_BYTES: Final[int] = 32

_WS_SCHEMES: Final[dict[str, str]] = {"https": "wss", "http": "ws"}

logger = Logger("muat.xrpc.subscription")


def subscribe_url(pds: PdsUrl, cursor: int | None = None) -> str:
    """WebSocket URL of the repository event stream, resuming after *cursor*."""
    url = pds.xrpc_url(endpoints.SUBSCRIBE_REPOS)
    scheme, sep, rest = url.partition("://")
    url = f"{_WS_SCHEMES.get(scheme, scheme)}{sep}{rest}"
    if cursor is not None:
        url += f"?cursor={cursor}"
    return url


def decode_frame(data: bytes) -> UnknownEvent:
    """Placeholder decoding of one binary frame."""
    return UnknownEvent(kind=f"binary:{data[:FRAME_PREVIEW_BYTES].hex()}")


async def connect(session: aiohttp.ClientSession, url: str) -> aiohttp.ClientWebSocketResponse:
    """Open the WebSocket with automatic pings disabled.

    Raises:
        ConnectionFailedError: If the handshake fails for any reason.
    """
    try:
        return await session.ws_connect(url, autoping=False)
    except (aiohttp.ClientError, TimeoutError) as e:
        raise ConnectionFailedError(f"{url}: {e}") from e


async def pump(ws: aiohttp.ClientWebSocketResponse, send: EventSink) -> None:
    """Forward frames from *ws* to *send* until the socket closes.

    The socket is closed on return, error or cancellation.
    """
    try:
        while True:
            msg = await ws.receive()
            if msg.type == aiohttp.WSMsgType.BINARY:
                await send(decode_frame(msg.data))
            elif msg.type == aiohttp.WSMsgType.PING:
                await ws.pong(msg.data)
            elif msg.type in (
                aiohttp.WSMsgType.CLOSE,
                aiohttp.WSMsgType.CLOSING,
                aiohttp.WSMsgType.CLOSED,
            ):
                logger.debug("subscription_closed", code=ws.close_code)
                return
            elif msg.type == aiohttp.WSMsgType.ERROR:
                raise ConnectionFailedError(f"websocket error: {ws.exception()}")
            else:
                logger.debug("subscription_frame_ignored", type=msg.type.name)
    finally:
        await ws.close()
