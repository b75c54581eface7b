"""Pure frozen dataclasses for identifiers, records, accounts, and events.

The models layer performs no I/O. Every model uses
``@dataclass(frozen=True, slots=True)`` and validates in ``__post_init__``,
so an invalid instance is never observable: construction is the single
validation point, and everything downstream may rely on the invariants.
Validation failures raise subclasses of
[InvalidInputError][muat.core.exceptions.InvalidInputError] carrying the
offending value and a reason.

Attributes:
    Did: Owner identifier ``did:<method>:<identifier>``.
    Nsid: Collection name, reverse-DNS with at least three segments.
    Rkey: Record key, 1-512 chars of ``[A-Za-z0-9._~-]``.
    AtUri: ``at://<did>/<nsid>/<rkey>`` record address.
    PdsUrl: Server address (``file://`` root or ``https://`` server).
    RecordValue: JSON object payload guaranteed to carry a string ``$type``.
    Record: ``{uri, cid, value}`` as returned by get/list.
    RepoEvent: Union of the firehose event dataclasses.

Note:
    Computed fields on frozen dataclasses are set with
    ``object.__setattr__`` inside ``__post_init__``, before the instance
    is visible to any other code.
"""

from .at_uri import AtUri
from .auth import AccessToken, Credentials, LoginResult, RefreshToken
from .constants import BackendKind, CommitAction, FirehoseOp
from .did import Did
from .events import (
    CommitEvent,
    CommitOperation,
    HandleEvent,
    IdentityEvent,
    InfoEvent,
    RepoEvent,
    UnknownEvent,
)
from .firehose import FirehoseLogEntry
from .nsid import Nsid
from .pds_url import PdsUrl
from .record import CreateAccountOutput, ListRecordsOutput, LocalAccount, Record
from .record_value import RecordValue
from .rkey import Rkey


__all__ = [
    "AccessToken",
    "AtUri",
    "BackendKind",
    "CommitAction",
    "CommitEvent",
    "CommitOperation",
    "CreateAccountOutput",
    "Credentials",
    "Did",
    "FirehoseLogEntry",
    "FirehoseOp",
    "HandleEvent",
    "IdentityEvent",
    "InfoEvent",
    "ListRecordsOutput",
    "LoginResult",
    "LocalAccount",
    "Nsid",
    "PdsUrl",
    "Record",
    "RecordValue",
    "RefreshToken",
    "RepoEvent",
    "Rkey",
    "UnknownEvent",
]
