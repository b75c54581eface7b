"""
Validated server address selecting between the file and network engines.

Two families of addresses are accepted:

* ``file://`` -- a local directory acting as a server root. ``file:///srv/pds``
  is absolute; ``file://./pds`` and ``file://../pds`` are resolved relative to
  the working directory.
* ``https://`` -- a remote server. Plain ``http://`` is accepted only for the
  loopback hosts ``localhost``, ``127.0.0.1`` and ``::1``.

Parsing and normalization use RFC 3986 (``rfc3986``): the scheme and host
are lowercased, dot segments are removed, and a path consisting of a single
``/`` is dropped so that ``https://bsky.social/`` and ``https://bsky.social``
compare equal.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import ClassVar
from urllib.parse import unquote

from rfc3986 import uri_reference
from rfc3986.exceptions import ValidationError
from rfc3986.validators import Validator

from muat.core.exceptions import InvalidPdsUrlError

from ._validation import validate_instance


@dataclass(frozen=True, slots=True)
class PdsUrl:
    """Immutable server address.

    Attributes:
        url: Normalized URL string (``str(pds_url)`` returns it).
        scheme: ``file``, ``http`` or ``https``.
        host: Hostname without IPv6 brackets, or ``None`` for file addresses
            without an authority.
        port: Explicit port, or ``None``.
        path: Path component (``""`` when absent).

    Raises:
        InvalidPdsUrlError: If the address is relative, insecure, or lacks a
            host (network) or a path (file).

    Examples:
        ```python
        pds = PdsUrl("https://bsky.social/")
        str(pds)                                        # 'https://bsky.social'
        pds.xrpc_url("com.atproto.server.createSession")
        # 'https://bsky.social/xrpc/com.atproto.server.createSession'

        local = PdsUrl("file:///var/lib/pds")
        local.is_local                                  # True
        local.to_file_path()                            # PosixPath('/var/lib/pds')
        ```
    """

    raw_url: str = field(repr=False, compare=False)

    url: str = field(init=False)
    scheme: str = field(init=False, repr=False)
    host: str | None = field(init=False, repr=False)
    port: int | None = field(init=False, repr=False)
    path: str = field(init=False, repr=False)
    _authority: str = field(init=False, repr=False, compare=False)

    _LOOPBACK_HOSTS: ClassVar[frozenset[str]] = frozenset({"localhost", "127.0.0.1", "::1"})
    _RELATIVE_AUTHORITIES: ClassVar[frozenset[str]] = frozenset({".", ".."})

    def __post_init__(self) -> None:
        validate_instance(self.raw_url, str, "raw_url")
        raw = self.raw_url.strip()
        uri = uri_reference(raw).normalize()

        if not uri.scheme:
            raise InvalidPdsUrlError(self.raw_url, "must be an absolute URL")

        try:
            Validator().check_validity_of("scheme", "host", "port", "path").validate(uri)
        except ValidationError as e:
            raise InvalidPdsUrlError(self.raw_url, str(e)) from None

        scheme = uri.scheme
        authority = uri.authority or ""
        host = uri.host.strip("[]") if uri.host else None
        path = uri.path or ""

        if scheme == "file":
            if not path:
                raise InvalidPdsUrlError(self.raw_url, "file:// URL must have a path")
            url = f"file://{authority}{path}"
        else:
            if scheme != "https" and not (scheme == "http" and host in self._LOOPBACK_HOSTS):
                raise InvalidPdsUrlError(
                    self.raw_url, "must use HTTPS (HTTP allowed only for localhost)"
                )
            if not host:
                raise InvalidPdsUrlError(self.raw_url, "must have a host")
            if path == "/":
                path = ""
                uri = uri.copy_with(path=None)
            url = uri.unsplit()

        object.__setattr__(self, "url", url)
        object.__setattr__(self, "scheme", scheme)
        object.__setattr__(self, "host", host)
        object.__setattr__(self, "port", int(uri.port) if uri.port else None)
        object.__setattr__(self, "path", path)
        object.__setattr__(self, "_authority", authority)

    @property
    def is_local(self) -> bool:
        """True for ``file://`` addresses served by the file engine."""
        return self.scheme == "file"

    @property
    def is_network(self) -> bool:
        return self.scheme in ("http", "https")

    def xrpc_url(self, method: str) -> str:
        """Return the endpoint URL for an XRPC *method*."""
        return f"{self.url.rstrip('/')}/xrpc/{method}"

    def to_file_path(self) -> Path | None:
        """Return the root directory for a ``file://`` address, else ``None``."""
        if not self.is_local:
            return None
        path = unquote(self.path)
        if self._authority in self._RELATIVE_AUTHORITIES:
            return Path(self._authority + path)
        return Path(path)

    def __str__(self) -> str:
        return self.url
