"""Bounded reading of HTTP response bodies.

An XRPC server controls the size of what it sends back; these helpers stop
reading once ``max_size`` bytes are exceeded so a hostile or broken server
cannot exhaust memory.

See Also:
    [XrpcClient][muat.backends.xrpc.client.XrpcClient]: Reads every
        response body through [read_bounded][muat.utils.http.read_bounded].
"""

from __future__ import annotations

import aiohttp


async def read_bounded(response: aiohttp.ClientResponse, max_size: int) -> bytes:
    """Read an entire response body with size enforcement.

    Accumulates chunks until EOF, which also handles chunked
    transfer-encoding where a single read may return fewer bytes than
    requested.

    Raises:
        ValueError: If the body exceeds *max_size* bytes.
    """
    chunks: list[bytes] = []
    total = 0
    while True:
        chunk = await response.content.read(max_size + 1 - total)
        if not chunk:
            break
        total += len(chunk)
        if total > max_size:
            raise ValueError(f"Response body too large: >{max_size} bytes")
        chunks.append(chunk)
    return b"".join(chunks)

