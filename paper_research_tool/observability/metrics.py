"""
Prometheus metrics for the paper research tool.

Metrics are organized by category:

- WebDAV transport metrics (per connection mode)
- Relay endpoint metrics
- Proxy availability gate metrics
"""

import logging

from prometheus_client import Counter, Histogram

logger = logging.getLogger(__name__)

# =============================================================================
# WebDAV Transport Metrics
# =============================================================================

webdav_requests_total = Counter(
    "paper_webdav_requests_total",
    "Total WebDAV requests issued by a transport",
    ["mode", "method", "status_code"],  # mode: direct | proxy; status 0 = no response
)

webdav_request_duration_seconds = Histogram(
    "paper_webdav_request_duration_seconds",
    "WebDAV request duration in seconds",
    ["mode", "method"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

# =============================================================================
# Relay Endpoint Metrics
# =============================================================================

relay_requests_total = Counter(
    "paper_relay_requests_total",
    "Total operations forwarded by the WebDAV relay endpoint",
    ["outcome"],  # outcome: success | failure | disabled | invalid | error
)

# =============================================================================
# Proxy Availability Gate Metrics
# =============================================================================

proxy_status_fetch_total = Counter(
    "paper_proxy_status_fetch_total",
    "Total relay availability status fetches",
    ["result"],  # result: success | error
)


def record_webdav_request(
    mode: str, method: str, status_code: int, duration: float
) -> None:
    """
    Record a WebDAV request issued by a transport.

    Args:
        mode: Connection mode ("direct" or "proxy")
        method: HTTP method
        status_code: Response status code (0 when no response was received)
        duration: Request duration in seconds
    """
    webdav_requests_total.labels(
        mode=mode, method=method, status_code=str(status_code)
    ).inc()
    webdav_request_duration_seconds.labels(mode=mode, method=method).observe(duration)


def record_relay_request(outcome: str) -> None:
    relay_requests_total.labels(outcome=outcome).inc()


def record_proxy_status_fetch(result: str) -> None:
    proxy_status_fetch_total.labels(result=result).inc()
