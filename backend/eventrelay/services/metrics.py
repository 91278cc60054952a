"""Prometheus metrics for the event relay.

Served on their own port (``METRICS_PORT``) next to the default process
and platform collectors of ``prometheus_client``.
"""

import logging
from typing import Optional

from prometheus_client import Counter, Gauge, start_http_server

logger = logging.getLogger(__name__)

# ─── Counters (monotonically increasing) ───────────────────────────

EVENTS_STORED = Counter("eventrelay_events_stored", "Total events appended to the log")

# ─── Gauges (current value) ────────────────────────────────────────

OPEN_STREAMS = Gauge("eventrelay_open_streams", "Number of open event stream cursors")


class MetricsServer:
    """Background HTTP server exposing /metrics for Prometheus scraping."""

    def __init__(self, host: str, port: int):
        self.host = host
        self.port = port
        self._server = None
        self._thread = None

    def start(self) -> None:
        self._server, self._thread = start_http_server(self.port, addr=self.host)
        # Port 0 binds an ephemeral port
        self.port = self._server.server_port
        logger.info(f"metrics server started on {self.host}:{self.port}")

    def stop(self) -> None:
        if self._server is None:
            return
        logger.info("graceful shutdown of the metrics server")
        self._server.shutdown()
        self._server.server_close()
        self._thread.join(timeout=1.0)
        self._server = None
        self._thread = None


def start_metrics_server(host: str, port: int, enabled: bool = True) -> Optional[MetricsServer]:
    """Start the metrics server, or return None when metrics are disabled."""
    if not enabled:
        logger.info("Metrics server disabled")
        return None
    server = MetricsServer(host, port)
    server.start()
    return server
