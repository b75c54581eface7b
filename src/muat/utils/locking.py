"""Cross-process exclusive advisory lock on a dedicated lock file.

Serializes writers of the firehose log across processes that share one
server root. On POSIX the lock is ``fcntl.flock(LOCK_EX)``; on Windows it
is ``msvcrt.locking`` on the first byte of the lock file. The lock is
acquired non-blocking and retried until a timeout, so a wedged peer
surfaces as an error instead of hanging the caller forever.

Examples:
    ```python
    with ExclusiveFileLock(root / "pds" / "firehose.lock"):
        with log_path.open("a") as f:
            f.write(line + "\\n")
    ```
"""

from __future__ import annotations

import errno
import sys
import time
from pathlib import Path
from types import TracebackType
from typing import IO, Self

from muat.core.exceptions import StorageIOError


if sys.platform == "win32":
    import msvcrt
else:
    import fcntl


DEFAULT_TIMEOUT: float = 15.0
DEFAULT_SLEEP: float = 0.01

_RETRY_ERRNOS = frozenset({errno.EACCES, errno.EAGAIN, errno.ENOLCK, errno.EINTR, errno.EDEADLK})


def _try_lock(f: IO[bytes]) -> None:
    if sys.platform == "win32":
        f.seek(0)
        msvcrt.locking(f.fileno(), msvcrt.LK_NBLCK, 1)
    else:
        fcntl.flock(f.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)


def _unlock(f: IO[bytes]) -> None:
    if sys.platform == "win32":
        f.seek(0)
        msvcrt.locking(f.fileno(), msvcrt.LK_UNLCK, 1)
    else:
        fcntl.flock(f.fileno(), fcntl.LOCK_UN)


def lock_file(
    path: Path, timeout: float = DEFAULT_TIMEOUT, sleep_time: float = DEFAULT_SLEEP
) -> IO[bytes]:
    """Open *path* (creating it) and take an exclusive lock on it.

    Returns:
        The open lock file; closing it releases the lock.

    Raises:
        StorageIOError: If the file cannot be opened or the lock is not
            acquired within *timeout* seconds.
    """
    try:
        f = path.open("a+b")
    except OSError as e:
        raise StorageIOError(f"cannot open lock file {path}: {e}") from e

    deadline = time.monotonic() + timeout
    while True:
        try:
            _try_lock(f)
            return f
        except OSError as e:
            if e.errno not in _RETRY_ERRNOS or time.monotonic() > deadline:
                f.close()
                raise StorageIOError(f"cannot lock {path}: {e}") from e
        time.sleep(sleep_time)


class ExclusiveFileLock:
    """Context manager holding an exclusive lock on a file for its body."""

    def __init__(
        self, path: Path, timeout: float = DEFAULT_TIMEOUT, sleep_time: float = DEFAULT_SLEEP
    ) -> None:
        self.path = path
        self.timeout = timeout
        self.sleep_time = sleep_time
        self._file: IO[bytes] | None = None

    def __enter__(self) -> Self:
        self._file = lock_file(self.path, self.timeout, self.sleep_time)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        f, self._file = self._file, None
        if f is None:
            return
        try:
            _unlock(f)
        except OSError as e:
            raise StorageIOError(f"cannot unlock {self.path}: {e}") from e
        finally:
            f.close()

    @property
    def locked(self) -> bool:
        return self._file is not None

