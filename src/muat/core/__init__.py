"""Core layer: error taxonomy, logging, configuration, and metrics.

Sits at the bottom of the dependency graph. Every other ``muat`` package may
import from here; nothing in here imports from the rest of ``muat``.

Attributes:
    MuatError: Root of the exception hierarchy. See
        [muat.core.exceptions][muat.core.exceptions].
    Logger: Structured logger supporting key=value and JSON output modes.
        See [Logger][muat.core.logger.Logger].
    MuatConfig: Pydantic configuration for both engines, metrics, and the
        CLI session store. See [MuatConfig][muat.core.config.MuatConfig].
    MetricsServer: Prometheus HTTP endpoint.
        See [MetricsServer][muat.core.metrics.MetricsServer].
    load_yaml: Safe YAML loading with ``yaml.safe_load()``.
"""

from .config import (
    FileEngineConfig,
    MuatConfig,
    SessionStoreConfig,
    XrpcConfig,
    default_session_path,
)
from .exceptions import (
    AccountUnavailableError,
    AuthError,
    ConfigurationError,
    ConnectionFailedError,
    DnsError,
    HttpError,
    InvalidAtUriError,
    InvalidCidError,
    InvalidCredentialsError,
    InvalidDidError,
    InvalidInputError,
    InvalidNsidError,
    InvalidPdsUrlError,
    InvalidRecordValueError,
    InvalidRkeyError,
    MuatError,
    OtherInputError,
    ProtocolError,
    RefreshTokenInvalidError,
    RequestTimeoutError,
    SessionExpiredError,
    StorageIOError,
    TlsError,
    TransportError,
)
from .logger import JsonFormatter, Logger, StructuredFormatter, format_kv_pairs
from .metrics import (
    FIREHOSE_APPENDS,
    FIREHOSE_EVENTS,
    XRPC_REQUEST_DURATION_SECONDS,
    XRPC_REQUESTS,
    MetricsConfig,
    MetricsServer,
    start_metrics_server,
)
from .yaml import load_yaml


__all__ = [
    "FIREHOSE_APPENDS",
    "FIREHOSE_EVENTS",
    "XRPC_REQUESTS",
    "XRPC_REQUEST_DURATION_SECONDS",
    "AccountUnavailableError",
    "AuthError",
    "ConfigurationError",
    "ConnectionFailedError",
    "DnsError",
    "FileEngineConfig",
    "HttpError",
    "InvalidAtUriError",
    "InvalidCidError",
    "InvalidCredentialsError",
    "InvalidDidError",
    "InvalidInputError",
    "InvalidNsidError",
    "InvalidPdsUrlError",
    "InvalidRecordValueError",
    "InvalidRkeyError",
    "JsonFormatter",
    "Logger",
    "MetricsConfig",
    "MetricsServer",
    "MuatConfig",
    "MuatError",
    "OtherInputError",
    "ProtocolError",
    "RefreshTokenInvalidError",
    "RequestTimeoutError",
    "SessionExpiredError",
    "SessionStoreConfig",
    "StorageIOError",
    "StructuredFormatter",
    "TlsError",
    "TransportError",
    "XrpcConfig",
    "default_session_path",
    "format_kv_pairs",
    "load_yaml",
    "start_metrics_server",
]
