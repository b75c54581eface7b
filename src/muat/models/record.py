"""Repository records, listing pages, and account descriptors."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from muat.core.exceptions import InvalidCidError, OtherInputError

from ._validation import validate_instance, validate_optional_instance
from .at_uri import AtUri
from .did import Did
from .record_value import RecordValue


@dataclass(frozen=True, slots=True)
class Record:
    """A stored record.

    Attributes:
        uri: Address of the record.
        cid: Opaque content fingerprint. The file engine derives it from a
            fast hash of the serialized bytes (``bafylocal<16 hex>``); the
            network engine passes through whatever the server returns.
        value: The record payload.
    """

    uri: AtUri
    cid: str
    value: RecordValue

    __hash__ = None  # type: ignore[assignment]

    def __post_init__(self) -> None:
        validate_instance(self.uri, AtUri, "uri")
        validate_instance(self.cid, str, "cid")
        validate_instance(self.value, RecordValue, "value")
        if not self.cid:
            raise InvalidCidError(self.cid, "cannot be empty")

    def to_dict(self) -> dict[str, Any]:
        return {"uri": str(self.uri), "cid": self.cid, "value": self.value.to_dict()}


@dataclass(frozen=True, slots=True)
class ListRecordsOutput:
    """One page of a collection listing.

    ``cursor`` is the key of the last record when the page is full (more
    records may follow) and ``None`` otherwise.
    """

    records: tuple[Record, ...] = ()
    cursor: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "records", tuple(self.records))
        for record in self.records:
            validate_instance(record, Record, "records[]")
        validate_optional_instance(self.cursor, str, "cursor")

    def __len__(self) -> int:
        return len(self.records)


@dataclass(frozen=True, slots=True)
class CreateAccountOutput:
    """Identity assigned to a newly created account."""

    did: Did
    handle: str

    def __post_init__(self) -> None:
        validate_instance(self.did, Did, "did")
        validate_instance(self.handle, str, "handle")


@dataclass(frozen=True, slots=True)
class LocalAccount:
    """Account stored by the file engine in ``accounts/<did>/account.json``.

    ``password_hash`` is an opaque, self-describing hash string produced by
    [hash_password()][muat.utils.passwords.hash_password].
    """

    did: Did
    handle: str
    created_at: str
    password_hash: str | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        validate_instance(self.did, Did, "did")
        validate_instance(self.handle, str, "handle")
        validate_instance(self.created_at, str, "created_at")
        validate_optional_instance(self.password_hash, str, "password_hash")

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "did": str(self.did),
            "handle": self.handle,
            "created_at": self.created_at,
        }
        if self.password_hash is not None:
            data["password_hash"] = self.password_hash
        return data

    @classmethod
    def from_dict(cls, data: Any) -> LocalAccount:
        """Rebuild an account from its stored JSON object.

        Raises:
            OtherInputError: If required fields are missing or mistyped.
            InvalidDidError: If the stored DID is malformed.
        """
        if not isinstance(data, dict):
            raise OtherInputError("account data must be a JSON object")
        try:
            return cls(
                did=Did(data["did"]),
                handle=data["handle"],
                created_at=data["created_at"],
                password_hash=data.get("password_hash"),
            )
        except (KeyError, TypeError) as e:
            raise OtherInputError(f"invalid account data: {e}") from e
