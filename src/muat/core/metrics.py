"""
Prometheus metrics collection and HTTP exposition.

Module-level metric objects are process-wide singletons shared by both
backends:

    XRPC_REQUESTS:                  RPC calls by method and outcome.
    XRPC_REQUEST_DURATION_SECONDS:  RPC latency histogram by method.
    FIREHOSE_APPENDS:               Lines appended to the local firehose log.
    FIREHOSE_EVENTS:                Events delivered to subscribers, by backend.

The [MetricsServer][muat.core.metrics.MetricsServer] exposes them over an
aiohttp endpoint for long-running commands such as ``muat pds subscribe``.
"""

from __future__ import annotations

from aiohttp import web
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class MetricsConfig(BaseModel):
    """Configuration for the Prometheus metrics endpoint.

    The endpoint is only started when ``enabled`` is True.
    """

    enabled: bool = Field(default=False, description="Enable the metrics endpoint")
    port: int = Field(default=8000, ge=1024, le=65535, description="Metrics HTTP port")
    host: str = Field(default="127.0.0.1", description="Metrics HTTP bind address")
    path: str = Field(default="/metrics", description="Metrics endpoint path")


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------

XRPC_REQUESTS = Counter(
    "muat_xrpc_requests",
    "XRPC calls issued, by method and outcome",
    ["method", "outcome"],
)

XRPC_REQUEST_DURATION_SECONDS = Histogram(
    "muat_xrpc_request_duration_seconds",
    "Duration of XRPC calls in seconds",
    ["method"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30),
)

FIREHOSE_APPENDS = Counter(
    "muat_firehose_appends",
    "Lines appended to the local firehose log",
    ["op"],
)

FIREHOSE_EVENTS = Counter(
    "muat_firehose_events",
    "Repository events delivered to subscribers",
    ["backend"],
)


# ---------------------------------------------------------------------------
# HTTP Server
# ---------------------------------------------------------------------------


class MetricsServer:
    """Async HTTP server exposing a Prometheus-compatible endpoint.

    Example:
        server = MetricsServer(MetricsConfig(enabled=True, port=8001))
        await server.start()
        # ... subscription runs ...
        await server.stop()
    """

    def __init__(self, config: MetricsConfig) -> None:
        self._config = config
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        """Start listening for scrape requests (no-op when disabled).

        Raises:
            OSError: If the port is already in use or binding fails.
        """
        if not self._config.enabled:
            return

        app = web.Application()
        app.router.add_get(self._config.path, self._handle_metrics)

        self._runner = web.AppRunner(app, access_log=None)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._config.host, self._config.port)
        await site.start()

    async def stop(self) -> None:
        """Stop the server. Safe to call when it was never started."""
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None

    async def _handle_metrics(self, _request: web.Request) -> web.Response:
        body = generate_latest()
        return web.Response(
            body=body,
            headers={"Content-Type": CONTENT_TYPE_LATEST},
        )


async def start_metrics_server(config: MetricsConfig) -> MetricsServer:
    """Create and start a [MetricsServer][muat.core.metrics.MetricsServer]."""
    server = MetricsServer(config)
    await server.start()
    return server
