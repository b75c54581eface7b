"""Storage engines behind a session.

Exactly two engines exist and the set is closed: a ``file://`` address is
always served by [FileBackend][muat.backends.file.FileBackend], every
network address by [XrpcBackend][muat.backends.xrpc.XrpcBackend]. Both
expose the same coroutine methods (``login``, ``refresh_session``,
``create_record``, ``get_record``, ``list_records``, ``delete_record``,
``create_account``, ``delete_account``, ``firehose``, ``close``), so callers
never branch on the engine except where behavior genuinely differs.
"""

from __future__ import annotations

from muat.core.config import MuatConfig
from muat.models.pds_url import PdsUrl

from .file import FileBackend
from .xrpc import XrpcBackend


Backend = FileBackend | XrpcBackend


def open_backend(pds: PdsUrl, config: MuatConfig | None = None) -> Backend:
    """Select and construct the engine for *pds*."""
    config = config or MuatConfig()
    if pds.is_local:
        return FileBackend.from_pds_url(pds, config.file)
    return XrpcBackend.from_pds_url(pds, config.xrpc)


__all__ = ["Backend", "FileBackend", "XrpcBackend", "open_backend"]
