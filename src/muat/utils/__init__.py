"""Shared helpers with no knowledge of either backend.

Attributes:
    read_bounded: Size-limited body reader for aiohttp responses.
    ExclusiveFileLock: Cross-process advisory lock (``flock``/``msvcrt``).
    hash_password / verify_password: Salted scrypt hashing.
    RWLock: Writer-preferring asyncio reader/writer lock.
    RepoEventStream: Bounded async event stream fed by a background task.
"""

from .http import read_bounded
from .locking import ExclusiveFileLock, lock_file
from .passwords import hash_password, verify_password
from .rwlock import RWLock
from .streams import DEFAULT_CHANNEL_SIZE, RepoEventStream


__all__ = [
    "DEFAULT_CHANNEL_SIZE",
    "ExclusiveFileLock",
    "RWLock",
    "RepoEventStream",
    "hash_password",
    "lock_file",
    "read_bounded",
    "verify_password",
]
