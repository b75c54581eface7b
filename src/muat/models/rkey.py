"""Record key: the name of a record within one collection."""

from __future__ import annotations

import string
from dataclasses import dataclass
from typing import ClassVar

from muat.core.exceptions import InvalidRkeyError

from ._validation import validate_instance


@dataclass(frozen=True, slots=True)
class Rkey:
    """Validated record key (1-512 chars of ``[A-Za-z0-9._~-]``, not ``.``/``..``).

    Raises:
        InvalidRkeyError: If the string is not a usable record key.
    """

    value: str

    MAX_LENGTH: ClassVar[int] = 512
    ALLOWED: ClassVar[frozenset[str]] = frozenset(string.ascii_letters + string.digits + "._~-")

    def __post_init__(self) -> None:
        validate_instance(self.value, str, "value")
        reason = self._check(self.value)
        if reason is not None:
            raise InvalidRkeyError(self.value, reason)

    @classmethod
    def _check(cls, value: str) -> str | None:
        if not value:
            return "cannot be empty"
        if len(value) > cls.MAX_LENGTH:
            return f"exceeds maximum length of {cls.MAX_LENGTH} characters"
        if value in (".", ".."):
            return "cannot be '.' or '..'"
        for c in value:
            if c not in cls.ALLOWED:
                return f"contains invalid character '{c}'"
        return None

    @classmethod
    def is_valid(cls, value: str) -> bool:
        """Return True if *value* would construct without error."""
        return isinstance(value, str) and cls._check(value) is None

    def __str__(self) -> str:
        return self.value
