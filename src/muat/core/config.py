"""
Configuration models for the muat engines and CLI.

All settings have defaults, so an empty YAML file (or none at all) yields a
working configuration. Example ``muat.yaml``:

```yaml
file:
  poll_interval: 0.5
  channel_size: 100
xrpc:
  timeout: 30
  proxy_url: socks5://127.0.0.1:9050
metrics:
  enabled: true
  port: 9100
session_store:
  path: /var/lib/muat/session.json
```

See Also:
    [load_yaml()][muat.core.yaml.load_yaml]: Safe YAML parsing used by
        [MuatConfig.from_yaml()][muat.core.config.MuatConfig.from_yaml].
"""

from __future__ import annotations

import os
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _get_version
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from .exceptions import ConfigurationError
from .metrics import MetricsConfig
from .yaml import load_yaml


def _default_user_agent() -> str:
    try:
        return f"muat/{_get_version('muat')}"
    except PackageNotFoundError:
        return "muat"


def default_session_path() -> Path:
    """Return ``$XDG_DATA_HOME/muat/session.json`` (``~/.local/share`` fallback)."""
    data_home = os.getenv("XDG_DATA_HOME")
    base = Path(data_home) if data_home else Path.home() / ".local" / "share"
    return base / "muat" / "session.json"


class FileEngineConfig(BaseModel):
    """Tuning for the filesystem-backed engine."""

    poll_interval: float = Field(
        default=0.5,
        gt=0.0,
        le=60.0,
        description="Seconds between fallback polls of the firehose log",
    )
    channel_size: int = Field(
        default=100,
        ge=1,
        description="Maximum buffered events before the tailer waits for the consumer",
    )
    default_list_limit: int = Field(
        default=50,
        ge=1,
        le=10_000,
        description="Page size used by list_records when no limit is given",
    )
    scrypt_n: int = Field(
        default=2**14,
        ge=2,
        description="Scrypt CPU/memory cost for stored password hashes",
    )

    @field_validator("scrypt_n")
    @classmethod
    def validate_scrypt_n(cls, v: int) -> int:
        """Scrypt requires the cost parameter to be a power of two."""
        if v & (v - 1):
            raise ValueError(f"scrypt_n must be a power of two, got {v}")
        return v


class XrpcConfig(BaseModel):
    """HTTP and WebSocket client settings for the network engine."""

    timeout: float = Field(
        default=30.0,
        gt=0.0,
        description="Total timeout for a single XRPC call, in seconds",
    )
    max_response_size: int = Field(
        default=5 * 1024 * 1024,
        ge=1024,
        description="Maximum accepted response body size in bytes",
    )
    user_agent: str = Field(
        default_factory=_default_user_agent,
        description="User-Agent header sent with every request",
    )
    proxy_url: str | None = Field(
        default=None,
        description="Optional SOCKS5 proxy URL (e.g. socks5://127.0.0.1:9050)",
    )
    channel_size: int = Field(
        default=100,
        ge=1,
        description="Maximum buffered subscription events",
    )


class SessionStoreConfig(BaseModel):
    """Where the CLI persists its login session."""

    path: Path = Field(
        default_factory=default_session_path,
        description="Session JSON file (written with mode 0600)",
    )


class MuatConfig(BaseModel):
    """Top-level configuration consumed by the CLI and the engines."""

    file: FileEngineConfig = Field(default_factory=FileEngineConfig)
    xrpc: XrpcConfig = Field(default_factory=XrpcConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    session_store: SessionStoreConfig = Field(default_factory=SessionStoreConfig)

    @classmethod
    def from_yaml(cls, config_path: str | Path) -> MuatConfig:
        """Load configuration from a YAML file.

        Raises:
            FileNotFoundError: If the file does not exist.
            ConfigurationError: If the YAML or any value is invalid.
        """
        return cls.from_dict(load_yaml(config_path))

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> MuatConfig:
        """Build configuration from a plain mapping.

        Raises:
            ConfigurationError: If any value fails validation.
        """
        try:
            return cls.model_validate(config_dict)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e
