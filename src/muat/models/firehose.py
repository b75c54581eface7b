"""
Line format of the local firehose log and its conversion to events.

Each line of ``pds/firehose.jsonl`` is one JSON object::

    {"uri": "at://did:plc:abc/org.test.record/3k2", "time": "2025-01-01T00:00:00.000001+00:00", "op": "create"}

Lines are append-only and never rewritten.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from muat.core.exceptions import OtherInputError

from ._validation import validate_instance
from .at_uri import AtUri
from .constants import CommitAction, FirehoseOp
from .events import CommitEvent, CommitOperation


_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


@dataclass(frozen=True, slots=True)
class FirehoseLogEntry:
    """One parsed line of the firehose log.

    ``uri`` is kept as a plain string so that lines written by other tools
    (or older versions) still parse; conversion to an event tolerates
    malformed URIs.
    """

    uri: str
    time: str
    op: FirehoseOp

    def __post_init__(self) -> None:
        validate_instance(self.uri, str, "uri")
        validate_instance(self.time, str, "time")
        object.__setattr__(self, "op", FirehoseOp(self.op))

    @classmethod
    def new(cls, uri: AtUri, op: FirehoseOp, when: datetime) -> FirehoseLogEntry:
        """Build an entry for *uri* stamped with *when* (RFC 3339, microseconds)."""
        return cls(uri=str(uri), time=when.isoformat(timespec="microseconds"), op=op)

    def to_json_line(self) -> str:
        """Serialize as a single line without the trailing newline."""
        return json.dumps({"uri": self.uri, "time": self.time, "op": str(self.op)})

    @classmethod
    def from_json_line(cls, line: str) -> FirehoseLogEntry:
        """Parse one log line.

        Raises:
            OtherInputError: If the line is not a well-formed entry.
        """
        try:
            data: Any = json.loads(line)
            return cls(uri=data["uri"], time=data["time"], op=data["op"])
        except (ValueError, KeyError, TypeError) as e:
            raise OtherInputError(f"invalid firehose line: {e}") from e

    @property
    def seq(self) -> int:
        """Synthetic sequence number: entry time in Unix microseconds, ``0`` if unparsable."""
        try:
            stamp = datetime.fromisoformat(self.time)
        except ValueError:
            return 0
        if stamp.tzinfo is None:
            stamp = stamp.replace(tzinfo=UTC)
        return (stamp - _EPOCH) // timedelta(microseconds=1)

    def to_event(self) -> CommitEvent:
        """Convert into a single-operation [CommitEvent][muat.models.events.CommitEvent].

        The repository and record path are split from the URI at the first
        ``/`` after ``at://``; anything unparsable becomes ``unknown``.
        """
        repo, sep, path = self.uri.removeprefix(AtUri.PREFIX).partition("/")
        if not self.uri.startswith(AtUri.PREFIX) or not sep:
            repo, path = "unknown", "unknown"

        seq = self.seq
        return CommitEvent(
            repo=repo,
            rev=f"rev-{seq}",
            seq=seq,
            time=self.time,
            ops=(CommitOperation(path=path, action=CommitAction(str(self.op))),),
        )
