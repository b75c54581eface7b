"""
Structured logging with key=value and JSON output support.

Wraps the standard library ``logging`` module so that library code can emit
event-style messages with attached fields::

    record_created uri=at://did:plc:abc/org.test.record/3k2 cid=bafylocal...

Two output formats are supported: human-readable key=value pairs (default)
and JSON lines for log aggregation. Values containing spaces, equals signs
or quotes are escaped and wrapped in double quotes; long values are
truncated.

Fields whose name marks them as a secret (``password``, ``access_token``,
``refresh_token``, ``token``...) are replaced by ``[REDACTED]`` before they
reach any handler.

The ``StructuredFormatter`` reads the ``structured_kv`` extra attached by
``Logger`` and renders it after the message. The CLI installs it on the root
handler so that ``Logger`` output and plain ``logging.getLogger()`` calls
share one format.

Examples:
    ```python
    from muat.core.logger import Logger

    logger = Logger("muat.file")
    logger.info("record_created", uri=str(uri), cid=cid)

    json_logger = Logger("muat.cli", json_output=True)
    json_logger.info("login_succeeded", did="did:plc:abc")
    # {"timestamp": "...", "level": "info", "service": "muat.cli", ...}
    ```
"""

from __future__ import annotations

import datetime
import json
import logging
from typing import Any, ClassVar


REDACTED = "[REDACTED]"


def format_kv_pairs(
    kwargs: dict[str, Any],
    max_value_length: int | None = 1000,
    prefix: str = " ",
) -> str:
    """Format a dictionary as space-separated key=value pairs.

    Args:
        kwargs: Key-value pairs to format.
        max_value_length: Maximum characters per value before truncation.
            Pass None to disable truncation.
        prefix: String prepended to the output (default: single space).

    Returns:
        Formatted string, e.g. ' key1=value1 key2="value with spaces"'.
        Returns an empty string if kwargs is empty.
    """
    if not kwargs:
        return ""

    parts = []
    for key, value in kwargs.items():
        text = _truncate(str(value), max_value_length)
        if not text or any(c in text for c in ' ="\''):
            escaped = text.replace("\\", "\\\\").replace('"', '\\"')
            parts.append(f'{key}="{escaped}"')
        else:
            parts.append(f"{key}={text}")

    return prefix + " ".join(parts)


def _truncate(text: str, max_value_length: int | None) -> str:
    if max_value_length and len(text) > max_value_length:
        return text[:max_value_length] + f"...<truncated {len(text) - max_value_length} chars>"
    return text


class StructuredFormatter(logging.Formatter):
    """Formats log records as ``level name message key=value ...``."""

    def format(self, record: logging.LogRecord) -> str:
        base = f"{record.levelname.lower()} {record.name} {record.getMessage()}"
        extra: dict[str, Any] = getattr(record, "structured_kv", {})
        if extra:
            base += format_kv_pairs(extra)
        if record.exc_info:
            base += "\n" + self.formatException(record.exc_info)
        return base


class JsonFormatter(logging.Formatter):
    """Formats log records as one JSON object per line.

    Structured fields attached by [Logger][muat.core.logger.Logger] become
    top-level keys next to ``timestamp``, ``level``, ``logger`` and
    ``message``.
    """

    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "timestamp": datetime.datetime.fromtimestamp(record.created, datetime.UTC).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
            **getattr(record, "structured_kv", {}),
        }
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        return json.dumps(data, default=str)


class Logger:
    """Structured logger that appends keyword arguments as fields.

    All public methods mirror the standard logging API with an added
    ``**kwargs`` parameter carrying the structured fields.

    Examples:
        ```python
        logger = Logger("muat.xrpc")
        logger.debug("xrpc_request", method="com.atproto.repo.getRecord")
        logger.warning("session_refresh_failed", error=str(e))
        ```
    """

    _DEFAULT_MAX_VALUE_LENGTH: ClassVar[int] = 1000

    # Field names that never reach a handler in clear text
    _SECRET_KEYS: ClassVar[frozenset[str]] = frozenset(
        {
            "password",
            "token",
            "access_token",
            "refresh_token",
            "access_jwt",
            "refresh_jwt",
            "authorization",
        }
    )

    def __init__(
        self,
        name: str,
        *,
        json_output: bool = False,
        max_value_length: int | None = None,
    ) -> None:
        """Initialize a structured logger.

        Args:
            name: Logger name, passed to ``logging.getLogger(name)``.
            json_output: If True, emit JSON objects instead of key=value pairs.
            max_value_length: Maximum character length for individual values
                before truncation. Defaults to 1000.
        """
        if max_value_length is None:
            max_value_length = self._DEFAULT_MAX_VALUE_LENGTH
        self._logger = logging.getLogger(name)
        self._json_output = json_output
        self._max_value_length = max_value_length

    @property
    def name(self) -> str:
        return self._logger.name

    def _scrub(self, kwargs: dict[str, Any]) -> dict[str, Any]:
        """Redact secret fields and pre-truncate the rest."""
        clean: dict[str, Any] = {}
        for key, value in kwargs.items():
            if key.lower() in self._SECRET_KEYS:
                clean[key] = REDACTED
                continue
            text = str(value)
            if self._max_value_length and len(text) > self._max_value_length:
                clean[key] = _truncate(text, self._max_value_length)
            else:
                clean[key] = value
        return clean

    def _format_json(self, msg: str, level: str, kwargs: dict[str, Any]) -> str:
        record = {
            "timestamp": datetime.datetime.now(datetime.UTC).isoformat(),
            "level": level,
            "service": self._logger.name,
            "message": msg,
            **kwargs,
        }
        return json.dumps(record, default=str)

    def _log(
        self, level: int, msg: str, kwargs: dict[str, Any], *, exc_info: bool = False
    ) -> None:
        if not self._logger.isEnabledFor(level):
            return
        fields = self._scrub(kwargs)
        if self._json_output:
            level_name = logging.getLevelName(level).lower()
            self._logger.log(level, self._format_json(msg, level_name, fields), exc_info=exc_info)
        else:
            extra = {"structured_kv": fields} if fields else {}
            self._logger.log(level, msg, extra=extra, exc_info=exc_info)

    def debug(self, msg: str, **kwargs: Any) -> None:
        """Log a DEBUG level message with optional key=value pairs."""
        self._log(logging.DEBUG, msg, kwargs)

    def info(self, msg: str, **kwargs: Any) -> None:
        """Log an INFO level message with optional key=value pairs."""
        self._log(logging.INFO, msg, kwargs)

    def warning(self, msg: str, **kwargs: Any) -> None:
        """Log a WARNING level message with optional key=value pairs."""
        self._log(logging.WARNING, msg, kwargs)

    def error(self, msg: str, **kwargs: Any) -> None:
        """Log an ERROR level message with optional key=value pairs."""
        self._log(logging.ERROR, msg, kwargs)

    def exception(self, msg: str, **kwargs: Any) -> None:
        """Log an ERROR level message with the active exception traceback."""
        self._log(logging.ERROR, msg, kwargs, exc_info=True)
