r"""muat -- minimal AT Protocol repository client.

One API over two storage engines: a local directory tree served through
``file://`` addresses, and a remote server spoken to over XRPC. Login
yields a [Session][muat.session.Session] carrying record operations and
token refresh; both engines offer a live firehose of repository events.

Imports flow strictly downward:

```text
        pds / session / session_store / __main__   Facade, sessions, CLI
                          |
                      backends                     file engine, XRPC engine
                          |
                        utils                      locks, hashing, streams
                          |
                        models                     Frozen dataclasses (no I/O)
                          |
                         core                      Errors, logging, config, metrics
```

Attributes:
    core: Exceptions, structured logging, configuration, metrics.
    models: Validated identifiers, records, events. Zero I/O.
    utils: File locking, password hashing, RW lock, event streams.
    backends: ``FileBackend`` and ``XrpcBackend``.

Note:
    Top-level imports (``from muat import Pds``) use lazy loading and
    resolve on first access.
"""

import importlib
from importlib.metadata import version as _get_version


__version__ = _get_version("muat")

__all__ = [
    "AtUri",
    "Backend",
    "BackendKind",
    "Credentials",
    "Did",
    "FileBackend",
    "ListRecordsOutput",
    "Logger",
    "MuatConfig",
    "MuatError",
    "Nsid",
    "Pds",
    "PdsUrl",
    "Record",
    "RecordValue",
    "RepoEvent",
    "RepoEventStream",
    "Rkey",
    "Session",
    "XrpcBackend",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "Logger": ("muat.core", "Logger"),
    "MuatConfig": ("muat.core", "MuatConfig"),
    "MuatError": ("muat.core", "MuatError"),
    "AtUri": ("muat.models", "AtUri"),
    "BackendKind": ("muat.models", "BackendKind"),
    "Credentials": ("muat.models", "Credentials"),
    "Did": ("muat.models", "Did"),
    "ListRecordsOutput": ("muat.models", "ListRecordsOutput"),
    "Nsid": ("muat.models", "Nsid"),
    "PdsUrl": ("muat.models", "PdsUrl"),
    "Record": ("muat.models", "Record"),
    "RecordValue": ("muat.models", "RecordValue"),
    "RepoEvent": ("muat.models", "RepoEvent"),
    "Rkey": ("muat.models", "Rkey"),
    "RepoEventStream": ("muat.utils", "RepoEventStream"),
    "Backend": ("muat.backends", "Backend"),
    "FileBackend": ("muat.backends", "FileBackend"),
    "XrpcBackend": ("muat.backends", "XrpcBackend"),
    "Pds": ("muat.pds", "Pds"),
    "Session": ("muat.session", "Session"),
}


def __getattr__(name: str) -> object:
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(module_path)
        value = getattr(module, attr_name)
        globals()[name] = value  # Cache for subsequent access
        return value
    raise AttributeError(f"module 'muat' has no attribute {name!r}")


def __dir__() -> list[str]:
    return __all__
