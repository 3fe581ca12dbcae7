"""Observability: in-memory counters for the real-time gateway."""
from acto.core.observability.metrics import (
    GatewayMetrics,
    get_metrics,
    record_authentication,
    record_connection,
    record_fanout,
)

__all__ = [
    "GatewayMetrics",
    "get_metrics",
    "record_authentication",
    "record_connection",
    "record_fanout",
]
