"""The ``file://`` engine: records and accounts as JSON files under a root directory.

Attributes:
    FileBackend: Async engine used by sessions and the facade.
    FileStore: Blocking store implementing the on-disk layout.
    FirehoseLog: Locked, append-only ``firehose.jsonl``.
    FirehoseTailer: Follows the log and yields commit events.
"""

from .backend import FileBackend, local_tokens
from .firehose import FirehoseLog, FirehoseTailer
from .store import FileStore, content_id, did_dir_name, generate_did, generate_rkey


__all__ = [
    "FileBackend",
    "FileStore",
    "FirehoseLog",
    "FirehoseTailer",
    "content_id",
    "did_dir_name",
    "generate_did",
    "generate_rkey",
    "local_tokens",
]
