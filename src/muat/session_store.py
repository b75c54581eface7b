"""
Persistence of the command-line login between invocations.

The session file is a small JSON object::

    {"did": "...", "pds": "...", "access_token": "...", "refresh_token": "..."}

It holds bearer tokens and is therefore created with mode ``0600``.
Loading rebuilds a [Session][muat.session.Session] and immediately tries
to refresh it; a failed refresh is logged and the stored tokens are kept.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from muat.core.config import MuatConfig
from muat.core.exceptions import (
    ConfigurationError,
    InvalidInputError,
    MuatError,
    StorageIOError,
)
from muat.core.logger import Logger
from muat.models.auth import AccessToken, RefreshToken
from muat.models.did import Did
from muat.models.pds_url import PdsUrl
from muat.session import Session


SESSION_FILE_MODE = 0o600

logger = Logger("muat.session_store")


async def save_session(session: Session, path: Path) -> None:
    """Write *session*'s identity and tokens to *path* (mode ``0600``)."""
    access = await session.export_access_token()
    refresh = await session.export_refresh_token()
    data: dict[str, Any] = {
        "did": str(session.did),
        "pds": str(session.pds),
        "access_token": access.expose() if access is not None else None,
        "refresh_token": refresh.expose() if refresh is not None else None,
    }

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, SESSION_FILE_MODE)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.chmod(path, SESSION_FILE_MODE)
    except OSError as e:
        raise StorageIOError(f"cannot write session file {path}: {e}") from e
    logger.debug("session_saved", path=str(path), did=data["did"])


async def load_session(path: Path, config: MuatConfig | None = None) -> Session | None:
    """Restore the saved session, or ``None`` if nothing is saved.

    Raises:
        ConfigurationError: If the file exists but cannot be understood.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None

    try:
        data = json.loads(text)
        pds = PdsUrl(data["pds"])
        did = Did(data["did"])
        access = AccessToken(data["access_token"])
        refresh_raw = data.get("refresh_token")
        refresh = RefreshToken(refresh_raw) if refresh_raw is not None else None
    except (ValueError, KeyError, TypeError, InvalidInputError) as e:
        raise ConfigurationError(f"invalid session file {path}: {e}") from e

    session = Session.from_persisted(pds, did, access, refresh, config)
    try:
        await session.refresh()
    except MuatError as e:
        logger.warning("session_refresh_failed", error=str(e), path=str(path))
    return session


def clear_session(path: Path) -> bool:
    """Delete the saved session. Returns ``True`` if a file was removed."""
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    return True
