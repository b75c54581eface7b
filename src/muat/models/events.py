"""
Repository events delivered by the firehose.

``RepoEvent`` is a closed union of five frozen dataclasses. Consumers
dispatch with ``match``:

```python
match event:
    case CommitEvent(repo=repo, ops=ops):
        ...
    case UnknownEvent(kind=kind):
        ...
```

The file engine produces only ``CommitEvent``; the network engine currently
yields ``UnknownEvent`` placeholders for binary frames (see
[muat.backends.xrpc.subscription][]).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

from ._validation import validate_instance, validate_optional_instance
from .constants import CommitAction


@dataclass(frozen=True, slots=True)
class CommitOperation:
    """One record-level change within a commit.

    Attributes:
        path: ``<collection>/<rkey>`` of the affected record.
        action: ``create``, ``update`` or ``delete``.
        cid: Content id of the new record version, when known.
    """

    path: str
    action: CommitAction
    cid: str | None = None

    def __post_init__(self) -> None:
        validate_instance(self.path, str, "path")
        object.__setattr__(self, "action", CommitAction(self.action))
        validate_optional_instance(self.cid, str, "cid")


@dataclass(frozen=True, slots=True)
class CommitEvent:
    """A batch of record operations on one repository."""

    repo: str
    rev: str
    seq: int
    time: str
    ops: tuple[CommitOperation, ...] = ()

    def __post_init__(self) -> None:
        validate_instance(self.repo, str, "repo")
        validate_instance(self.rev, str, "rev")
        validate_instance(self.seq, int, "seq")
        validate_instance(self.time, str, "time")
        object.__setattr__(self, "ops", tuple(self.ops))

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["ops"] = [dict(op, action=str(op["action"])) for op in data["ops"]]
        return data


@dataclass(frozen=True, slots=True)
class IdentityEvent:
    """An identity (DID document) update."""

    did: str
    seq: int
    time: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class HandleEvent:
    """A handle change for an identity."""

    did: str
    handle: str
    seq: int
    time: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class InfoEvent:
    """Informational stream message (e.g. ``OutdatedCursor``)."""

    name: str
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class UnknownEvent:
    """A frame the decoder did not turn into a structured event."""

    kind: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


RepoEvent = CommitEvent | IdentityEvent | HandleEvent | InfoEvent | UnknownEvent
