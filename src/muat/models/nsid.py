"""Namespaced identifier naming a record collection (reverse-DNS style)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from muat.core.exceptions import InvalidNsidError

from ._validation import validate_instance


@dataclass(frozen=True, slots=True)
class Nsid:
    """Validated collection name such as ``app.bsky.feed.post``.

    At least three dot-separated segments; each segment starts with an ASCII
    letter and contains only ASCII letters, digits and hyphens. The first two
    segments form the authority, the rest the name.

    Raises:
        InvalidNsidError: If the string is not a well-formed NSID.
    """

    value: str

    MAX_LENGTH: ClassVar[int] = 317

    def __post_init__(self) -> None:
        validate_instance(self.value, str, "value")
        reason = self._check(self.value)
        if reason is not None:
            raise InvalidNsidError(self.value, reason)

    @classmethod
    def _check(cls, value: str) -> str | None:
        if not value:
            return "cannot be empty"

        segments = value.split(".")
        if len(segments) < 3:  # noqa: PLR2004
            return "must have at least 3 segments (e.g., 'app.bsky.feed')"

        for i, segment in enumerate(segments, start=1):
            if not segment:
                return f"segment {i} is empty"
            if not (segment[0].isascii() and segment[0].isalpha()):
                return f"segment '{segment}' must start with a letter"
            for c in segment:
                if not ((c.isascii() and c.isalnum()) or c == "-"):
                    return f"segment '{segment}' contains invalid character '{c}'"

        if len(value) > cls.MAX_LENGTH:
            return f"exceeds maximum length of {cls.MAX_LENGTH} characters"
        return None

    @property
    def segments(self) -> list[str]:
        return self.value.split(".")

    @property
    def authority(self) -> str:
        """The reverse-DNS authority, e.g. ``app.bsky`` for ``app.bsky.feed.post``."""
        return ".".join(self.segments[:2])

    @property
    def name(self) -> str:
        """Everything after the authority, e.g. ``feed.post``."""
        return ".".join(self.segments[2:])

    def __str__(self) -> str:
        return self.value
