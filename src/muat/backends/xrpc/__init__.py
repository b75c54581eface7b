"""The network engine: XRPC over HTTPS plus the ``subscribeRepos`` WebSocket.

Attributes:
    XrpcBackend: Async engine used by sessions and the facade.
    XrpcClient: aiohttp-based client exposing the XRPC call shapes.
    endpoints: Method identifiers of every endpoint used.
"""

from . import endpoints
from .backend import XrpcBackend
from .client import XrpcClient
from .subscription import decode_frame, subscribe_url


__all__ = [
    "XrpcBackend",
    "XrpcClient",
    "decode_frame",
    "endpoints",
    "subscribe_url",
]
