"""Prometheus /metrics endpoint.

`prometheus_client.start_http_server` serves from its own daemon thread, so
the endpoint runs beside the kopf event loop and never holds up shutdown.
"""

import logging
from prometheus_client import REGISTRY, CollectorRegistry, start_http_server

logger = logging.getLogger(__name__)


def init_metrics_server(
    port: int = 8000, addr: str = "0.0.0.0", registry: CollectorRegistry = REGISTRY
) -> None:
    """Serve `registry` on http://addr:port/metrics.

    Raises:
        OSError: if the port cannot be bound.
    """
    try:
        start_http_server(port, addr=addr, registry=registry)
    except OSError as e:
        logger.error(f"Failed to start metrics server on {addr}:{port}: {e}")
        raise
    logger.info(f"Metrics available at http://{addr}:{port}/metrics")
