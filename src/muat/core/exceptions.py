"""muat exception hierarchy.

Every failure surfaced by the library is an instance of
[MuatError][muat.core.exceptions.MuatError]. The four protocol families
mirror the ways a record operation can fail, and each concrete variant is
its own class so callers branch with ``except`` clauses instead of string
matching.

Exception hierarchy:

```text
MuatError (base -- never raised directly)
├── TransportError              -- the request never got a usable answer
│   ├── ConnectionFailedError
│   ├── DnsError
│   ├── TlsError
│   ├── RequestTimeoutError
│   ├── HttpError
│   └── StorageIOError          -- file engine I/O and lock failures
├── AuthError                   -- credentials or tokens rejected/missing
│   ├── InvalidCredentialsError
│   ├── SessionExpiredError
│   ├── RefreshTokenInvalidError
│   └── AccountUnavailableError
├── ProtocolError               -- non-success response (status + code)
├── InvalidInputError           -- a value failed validation
│   ├── InvalidDidError, InvalidNsidError, InvalidRkeyError,
│   │   InvalidAtUriError, InvalidPdsUrlError, InvalidCidError
│   ├── InvalidRecordValueError
│   └── OtherInputError
└── ConfigurationError          -- bad YAML or config values
```

See Also:
    [XrpcClient][muat.backends.xrpc.client.XrpcClient]: Translates aiohttp
        failures into [TransportError][muat.core.exceptions.TransportError]
        subclasses and error bodies into
        [ProtocolError][muat.core.exceptions.ProtocolError].
    [FileStore][muat.backends.file.store.FileStore]: Wraps ``OSError`` as
        [StorageIOError][muat.core.exceptions.StorageIOError].
"""

from __future__ import annotations

from typing import ClassVar


class MuatError(Exception):
    """Base exception for all muat errors.

    Never raised directly -- always use a specific subclass.

    Attributes:
        kind: Coarse error family (``transport``, ``auth``, ``protocol``,
            ``invalid_input``, ``configuration``).
    """

    kind: ClassVar[str] = "error"


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


class TransportError(MuatError):
    """Base for failures below the protocol layer (network or disk)."""

    kind: ClassVar[str] = "transport"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"transport error: {self.describe()}")

    def describe(self) -> str:
        """Return the variant-specific description without the family prefix."""
        return self.message


class ConnectionFailedError(TransportError):
    """The remote endpoint refused or dropped the connection."""

    def describe(self) -> str:
        return f"connection failed: {self.message}"


class DnsError(TransportError):
    """The server hostname could not be resolved."""

    def __init__(self, host: str) -> None:
        self.host = host
        super().__init__(host)

    def describe(self) -> str:
        return f"DNS resolution failed: {self.host}"


class TlsError(TransportError):
    """Certificate verification or TLS handshake failure."""

    def describe(self) -> str:
        return f"TLS error: {self.message}"


class RequestTimeoutError(TransportError):
    """The request exceeded its deadline.

    ``duration_ms`` is ``0`` when the underlying client did not report the
    elapsed time.
    """

    def __init__(self, duration_ms: int = 0) -> None:
        self.duration_ms = duration_ms
        super().__init__(str(duration_ms))

    def describe(self) -> str:
        return f"request timed out after {self.duration_ms}ms"


class HttpError(TransportError):
    """Any other HTTP client failure (malformed response, payload errors)."""

    def describe(self) -> str:
        return f"HTTP error: {self.message}"


class StorageIOError(TransportError):
    """Filesystem or advisory-lock failure in the file engine."""

    def describe(self) -> str:
        return f"I/O error: {self.message}"


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


class AuthError(MuatError):
    """Base for authentication failures."""

    kind: ClassVar[str] = "auth"
    default_message: ClassVar[str] = "authentication failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(f"authentication error: {self.message}")


class InvalidCredentialsError(AuthError):
    """Unknown identifier or wrong password."""

    default_message: ClassVar[str] = "invalid credentials"


class SessionExpiredError(AuthError):
    """No usable access token is available for an authenticated call."""

    default_message: ClassVar[str] = "session expired"


class RefreshTokenInvalidError(AuthError):
    """The refresh token is missing or was rejected."""

    default_message: ClassVar[str] = "refresh token invalid"


class AccountUnavailableError(AuthError):
    """The account exists but cannot be used (takendown, suspended, ...)."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"account unavailable: {reason}")


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class ProtocolError(MuatError):
    """A remote (or emulated) call answered with a non-success status.

    Attributes:
        status: HTTP status code.
        error: Server-supplied machine-readable error code, if any.
        message: Server-supplied human-readable message, if any.
    """

    kind: ClassVar[str] = "protocol"

    _AUTH_ERROR_CODES: ClassVar[frozenset[str]] = frozenset(
        {"AuthenticationRequired", "ExpiredToken", "InvalidToken"}
    )

    def __init__(self, status: int, error: str | None = None, message: str | None = None) -> None:
        self.status = status
        self.error = error
        self.message = message
        super().__init__(f"protocol error: {self.describe()}")

    def describe(self) -> str:
        """Render as ``HTTP <status> [<error>]: <message>``, omitting absent parts."""
        text = f"HTTP {self.status}"
        if self.error is not None:
            text += f" [{self.error}]"
        if self.message is not None:
            text += f": {self.message}"
        return text

    @property
    def is_auth_error(self) -> bool:
        """True when the server rejected the call for authentication reasons."""
        return self.status == 401 or self.error in self._AUTH_ERROR_CODES  # noqa: PLR2004


# ---------------------------------------------------------------------------
# Invalid input
# ---------------------------------------------------------------------------


class InvalidInputError(MuatError):
    """Base for value validation failures.

    Attributes:
        value: The offending raw input.
        reason: Human-readable explanation.
    """

    kind: ClassVar[str] = "invalid_input"
    label: ClassVar[str] = "value"

    def __init__(self, value: str, reason: str) -> None:
        self.value = value
        self.reason = reason
        super().__init__(f"invalid input: {self.describe()}")

    def describe(self) -> str:
        return f"invalid {self.label} '{self.value}': {self.reason}"


class InvalidDidError(InvalidInputError):
    """Malformed owner identifier."""

    label: ClassVar[str] = "DID"


class InvalidNsidError(InvalidInputError):
    """Malformed collection name."""

    label: ClassVar[str] = "NSID"


class InvalidAtUriError(InvalidInputError):
    """Malformed resource URI."""

    label: ClassVar[str] = "AT URI"


class InvalidPdsUrlError(InvalidInputError):
    """Malformed or insecure server address."""

    label: ClassVar[str] = "PDS URL"


class InvalidRkeyError(InvalidInputError):
    """Malformed record key."""

    label: ClassVar[str] = "rkey"


class InvalidCidError(InvalidInputError):
    """Malformed content identifier."""

    label: ClassVar[str] = "CID"


class InvalidRecordValueError(InvalidInputError):
    """Record payload is not an object or lacks a string type tag."""

    def __init__(self, reason: str) -> None:
        super().__init__("", reason)

    def describe(self) -> str:
        return f"invalid record value: {self.reason}"


class OtherInputError(InvalidInputError):
    """Any other caller-supplied contract violation."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__("", message)

    def describe(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(MuatError):
    """Invalid or missing configuration (YAML, env vars, CLI flags).

    See Also:
        [load_yaml()][muat.core.yaml.load_yaml]: YAML loading function
            that may trigger configuration errors.
    """

    kind: ClassVar[str] = "configuration"
