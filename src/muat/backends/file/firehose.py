"""
Append-only firehose log and its live tailer.

The log lives at ``<root>/pds/firehose.jsonl``: one
[FirehoseLogEntry][muat.models.firehose.FirehoseLogEntry] per line. Every
append takes an exclusive advisory lock on ``<root>/pds/firehose.lock``,
writes one line, flushes and fsyncs, then releases the lock. Writers in
different processes are therefore serialized, and append order equals
the order in which tailers observe lines.

A [FirehoseTailer][muat.backends.file.firehose.FirehoseTailer] remembers a
byte offset into the log. On every wake-up it reopens the file, seeks to
the offset, consumes complete lines only, and advances the offset past
them. Wake-ups come from two sources driving the same read path:

* filesystem change notifications for the log file (``watchfiles``);
* a fixed-interval poll, which also covers platforms or filesystems where
  notifications are unavailable.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Final

from watchfiles import Change, awatch

from muat.core.exceptions import MuatError, StorageIOError
from muat.core.logger import Logger
from muat.core.metrics import FIREHOSE_APPENDS
from muat.models.firehose import FirehoseLogEntry
from muat.utils.locking import ExclusiveFileLock


if TYPE_CHECKING:
    from muat.models.at_uri import AtUri
    from muat.models.constants import FirehoseOp
    from muat.models.events import CommitEvent
    from muat.utils.streams import EventSink


FIREHOSE_FILE: Final[str] = "firehose.jsonl"
LOCK_FILE: Final[str] = "firehose.lock"

logger = Logger("muat.file.firehose")


class FirehoseLog:
    """The append-only log file of one server root."""

    def __init__(self, pds_dir: Path) -> None:
        self.pds_dir = pds_dir
        self.path = pds_dir / FIREHOSE_FILE
        self.lock_path = pds_dir / LOCK_FILE

    def append(self, uri: AtUri, op: FirehoseOp) -> FirehoseLogEntry:
        """Append one entry under the cross-process lock.

        Raises:
            StorageIOError: If the lock cannot be taken or the write fails.
        """
        entry = FirehoseLogEntry.new(uri, op, datetime.now(UTC))
        line = entry.to_json_line() + "\n"

        try:
            self.pds_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageIOError(f"cannot create {self.pds_dir}: {e}") from e

        with ExclusiveFileLock(self.lock_path):
            try:
                with self.path.open("a", encoding="utf-8") as f:
                    f.write(line)
                    f.flush()
                    os.fsync(f.fileno())
            except OSError as e:
                raise StorageIOError(f"cannot append to {self.path}: {e}") from e

        FIREHOSE_APPENDS.labels(op=str(op)).inc()
        logger.debug("firehose_appended", uri=entry.uri, op=str(op))
        return entry

    def size(self) -> int:
        """Current size of the log in bytes (``0`` if it does not exist yet)."""
        try:
            return self.path.stat().st_size
        except FileNotFoundError:
            return 0
        except OSError as e:
            raise StorageIOError(f"cannot stat {self.path}: {e}") from e

    def read_all(self) -> list[FirehoseLogEntry]:
        """Parse the whole log, skipping blank and malformed lines."""
        entries, _ = self.read_from(0)
        return entries

    def read_from(self, position: int) -> tuple[list[FirehoseLogEntry], int]:
        """Read complete lines starting at byte *position*.

        A trailing line without its newline is left for the next read.

        Returns:
            The parsed entries and the offset just past the last complete line.
        """
        try:
            with self.path.open("rb") as f:
                f.seek(position)
                data = f.read()
        except FileNotFoundError:
            return [], position
        except OSError as e:
            raise StorageIOError(f"cannot read {self.path}: {e}") from e

        end = data.rfind(b"\n")
        if end < 0:
            return [], position

        entries: list[FirehoseLogEntry] = []
        for raw in data[: end + 1].splitlines():
            line = raw.decode("utf-8", errors="replace").strip()
            if not line:
                continue
            try:
                entries.append(FirehoseLogEntry.from_json_line(line))
            except MuatError as e:
                logger.debug("firehose_line_skipped", error=str(e))
        return entries, position + end + 1


class FirehoseTailer:
    """Turns lines appended to a [FirehoseLog][muat.backends.file.firehose.FirehoseLog] into events.

    The initial offset is the log size at construction time, so only
    entries appended afterwards are delivered.
    """

    def __init__(self, log: FirehoseLog, *, poll_interval: float = 0.5) -> None:
        self._log = log
        self._poll_interval = poll_interval
        self._position = log.size()

    @property
    def position(self) -> int:
        return self._position

    def read_new(self) -> list[CommitEvent]:
        """Consume complete lines past the current offset and convert them."""
        entries, self._position = self._log.read_from(self._position)
        return [entry.to_event() for entry in entries]

    async def run(self, send: EventSink) -> None:
        """Forward events to *send* until cancelled."""
        wake = asyncio.Event()
        stop = asyncio.Event()
        watcher = asyncio.create_task(self._watch(wake, stop), name="muat-firehose-watch")
        try:
            while True:
                for event in await asyncio.to_thread(self.read_new):
                    await send(event)
                with contextlib.suppress(TimeoutError):
                    await asyncio.wait_for(wake.wait(), timeout=self._poll_interval)
                wake.clear()
        finally:
            stop.set()
            watcher.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await watcher

    async def _watch(self, wake: asyncio.Event, stop: asyncio.Event) -> None:
        """Set *wake* whenever the log file is created or modified, until *stop* is set."""
        log_name = self._log.path.name

        def is_log_change(change: Change, path: str) -> bool:
            return change in (Change.added, Change.modified) and Path(path).name == log_name

        try:
            async for _changes in awatch(
                self._log.pds_dir,
                watch_filter=is_log_change,
                recursive=False,
                debounce=50,
                step=10,
                stop_event=stop,
            ):
                wake.set()
        except (OSError, RuntimeError) as e:
            logger.warning("firehose_watch_unavailable", path=str(self._log.pds_dir), error=str(e))
