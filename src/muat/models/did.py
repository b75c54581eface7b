"""Decentralized identifier (``did:<method>:<identifier>``) of a repository owner."""

from __future__ import annotations

from dataclasses import dataclass

from muat.core.exceptions import InvalidDidError

from ._validation import validate_instance


@dataclass(frozen=True, slots=True)
class Did:
    """Validated owner identifier.

    The method must be non-empty lowercase ASCII letters; the identifier is
    everything after the second colon and must be non-empty.

    Raises:
        InvalidDidError: If the string is not a well-formed DID.

    Examples:
        ```python
        did = Did("did:plc:abc123")
        did.method       # 'plc'
        did.identifier   # 'abc123'
        str(did)         # 'did:plc:abc123'
        ```
    """

    value: str

    def __post_init__(self) -> None:
        validate_instance(self.value, str, "value")
        reason = self._check(self.value)
        if reason is not None:
            raise InvalidDidError(self.value, reason)

    @staticmethod
    def _check(value: str) -> str | None:
        if not value.startswith("did:"):
            return "must start with 'did:'"
        method, sep, identifier = value[4:].partition(":")
        if not sep:
            return "must have format 'did:<method>:<identifier>'"
        if not method or not all("a" <= c <= "z" for c in method):
            return "method must be non-empty lowercase letters"
        if not identifier:
            return "identifier must be non-empty"
        return None

    @property
    def method(self) -> str:
        return self.value[4:].partition(":")[0]

    @property
    def identifier(self) -> str:
        return self.value[4:].partition(":")[2]

    def __str__(self) -> str:
        return self.value
