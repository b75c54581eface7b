"""Shared enumerations for the models layer."""

from __future__ import annotations

from enum import StrEnum


class BackendKind(StrEnum):
    """Which engine serves a session.

    Selected once from the server address: ``file://`` addresses always map
    to ``FILE``; every other address maps to ``XRPC``.
    """

    FILE = "file"
    XRPC = "xrpc"


class CommitAction(StrEnum):
    """Operation applied to one record path inside a commit."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class FirehoseOp(StrEnum):
    """Operation recorded in a line of the local firehose log."""

    CREATE = "create"
    DELETE = "delete"
