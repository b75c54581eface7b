"""Login credentials and session tokens.

All three types hold secrets and therefore never render them: ``repr()``
and ``str()`` show ``[REDACTED]``. Use ``.expose()`` when the raw value is
actually needed (building an ``Authorization`` header, persisting a
session).
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ._validation import validate_instance
from .did import Did


_REDACTED = "[REDACTED]"


@dataclass(frozen=True, slots=True)
class Credentials:
    """Identifier (handle or DID) and password for a login attempt."""

    identifier: str
    password: str = field(repr=False)

    def __post_init__(self) -> None:
        validate_instance(self.identifier, str, "identifier")
        validate_instance(self.password, str, "password")

    def __repr__(self) -> str:
        return f"Credentials(identifier={self.identifier!r}, password={_REDACTED})"


@dataclass(frozen=True, slots=True)
class _Token:
    value: str = field(repr=False)

    def __post_init__(self) -> None:
        validate_instance(self.value, str, "value")

    def expose(self) -> str:
        """Return the raw token string."""
        return self.value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({_REDACTED})"

    def __str__(self) -> str:
        return _REDACTED


@dataclass(frozen=True, slots=True, repr=False)
class AccessToken(_Token):
    """Short-lived bearer token sent with authenticated calls."""


@dataclass(frozen=True, slots=True, repr=False)
class RefreshToken(_Token):
    """Long-lived token exchanged for a new token pair."""


@dataclass(frozen=True, slots=True)
class LoginResult:
    """Identity and token pair returned by a successful login or refresh."""

    did: Did
    handle: str
    access: AccessToken
    refresh: RefreshToken

    def __post_init__(self) -> None:
        validate_instance(self.did, Did, "did")
        validate_instance(self.handle, str, "handle")
        validate_instance(self.access, AccessToken, "access")
        validate_instance(self.refresh, RefreshToken, "refresh")
