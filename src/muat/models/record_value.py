"""Validated record payload: a JSON object carrying a string ``$type`` tag."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, ClassVar

from muat.core.exceptions import InvalidRecordValueError

from ._validation import deep_freeze, thaw, validate_json


@dataclass(frozen=True, slots=True)
class RecordValue:
    """Immutable record payload.

    The wrapped object is deep-frozen on construction; use
    [to_dict()][muat.models.record_value.RecordValue.to_dict] to obtain a
    mutable, JSON-serializable copy.

    Instances compare by content but are not hashable.

    Raises:
        InvalidRecordValueError: If the value is not an object, has no
            ``$type`` field, or its ``$type`` is not a string.
        TypeError: If the object contains non-JSON values.

    Examples:
        ```python
        value = RecordValue({"$type": "org.test.record", "text": "hi"})
        value.record_type       # 'org.test.record'
        value.get("text")       # 'hi'

        RecordValue.with_type("org.test.record", {"text": "hi"})
        ```
    """

    data: Mapping[str, Any]

    TYPE_FIELD: ClassVar[str] = "$type"

    __hash__ = None  # type: ignore[assignment]

    def __post_init__(self) -> None:
        if not isinstance(self.data, Mapping):
            raise InvalidRecordValueError("record value must be a JSON object")
        if self.TYPE_FIELD not in self.data:
            raise InvalidRecordValueError("record value must contain a $type field")
        if not isinstance(self.data[self.TYPE_FIELD], str):
            raise InvalidRecordValueError("$type field must be a string")
        try:
            validate_json(self.data, "record value")
        except (TypeError, ValueError) as e:
            raise InvalidRecordValueError(str(e)) from e
        object.__setattr__(self, "data", deep_freeze(self.data))

    @classmethod
    def with_type(cls, record_type: str, value: Any) -> RecordValue:
        """Build a value from *value* with ``$type`` set (or overridden) to *record_type*.

        Raises:
            InvalidRecordValueError: If *value* is not an object.
        """
        if not isinstance(value, Mapping):
            raise InvalidRecordValueError("record value must be a JSON object")
        return cls({**value, cls.TYPE_FIELD: record_type})

    @property
    def record_type(self) -> str:
        return self.data[self.TYPE_FIELD]

    def get(self, key: str, default: Any = None) -> Any:
        """Return the top-level field *key* (frozen), or *default*."""
        return self.data.get(key, default)

    def to_dict(self) -> dict[str, Any]:
        """Return a mutable deep copy suitable for ``json.dumps``."""
        return thaw(self.data)
