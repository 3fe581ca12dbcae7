"""
Simple in-memory counters for the real-time gateway: connections, authentications, message fanout.
"""
import logging
from typing import Dict

logger = logging.getLogger("acto.gateway.metrics")


class GatewayMetrics:
    """In-memory counters for gateway activity since process start."""

    def __init__(self) -> None:
        self._connections_opened = 0
        self._connections_closed = 0
        self._auth_success = 0
        self._auth_failed = 0
        self._messages_delivered = 0
        self._messages_skipped_offline = 0

    def record_connection(self, opened: bool) -> None:
        if opened:
            self._connections_opened += 1
        else:
            self._connections_closed += 1

    def record_authentication(self, success: bool) -> None:
        if success:
            self._auth_success += 1
        else:
            self._auth_failed += 1

    def record_fanout(self, delivered: int, skipped: int) -> None:
        self._messages_delivered += delivered
        self._messages_skipped_offline += skipped

    def get_stats(self) -> Dict[str, int]:
        return {
            "connections_opened": self._connections_opened,
            "connections_closed": self._connections_closed,
            "auth_success": self._auth_success,
            "auth_failed": self._auth_failed,
            "messages_delivered": self._messages_delivered,
            "messages_skipped_offline": self._messages_skipped_offline,
        }

    def reset(self) -> None:
        self.__init__()


_metrics = GatewayMetrics()


def get_metrics() -> GatewayMetrics:
    return _metrics


def record_connection(opened: bool) -> None:
    _metrics.record_connection(opened)


def record_authentication(success: bool) -> None:
    _metrics.record_authentication(success)


def record_fanout(delivered: int, skipped: int) -> None:
    _metrics.record_fanout(delivered, skipped)
