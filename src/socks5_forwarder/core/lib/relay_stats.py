"""Statistics tracking for the forwarder.

This module provides thread-safe counters for the forwarder, including:
- Active, total and failed connection counts
- Bytes relayed in each direction
- Bandwidth history for the live dashboard

Every connection thread updates the same object, so all mutations go
through an internal lock.

Example:
    from .relay_stats import relay_stats

    relay_stats.connection_started()
    relay_stats.update_bytes(sent=1024, received=0)
    relay_stats.connection_ended(failed=False)
"""

import threading
import time
from collections import deque
from datetime import UTC, datetime, timedelta
from typing import Final

BANDWIDTH_WINDOW: Final = 5  # Seconds
HISTORY_SECONDS: Final = 60


class RelayStats:
    """Thread-safe statistics tracker for relayed connections.

    "Sent" counts bytes copied from inbound clients towards the proxy,
    "received" counts bytes copied from the proxy back to the clients.
    """

    def __init__(self) -> None:
        self.active_connections = 0
        self.total_connections = 0
        self.failed_connections = 0
        self.total_bytes_sent = 0
        self.total_bytes_received = 0
        # One (bytes, second) bucket per second with traffic
        self.bandwidth_history: deque[tuple[int, int]] = deque(maxlen=HISTORY_SECONDS)
        self.start_time = datetime.now(tz=UTC)
        self._lock = threading.Lock()

    def update_bytes(self, sent: int, received: int) -> None:
        """Update byte transfer statistics.

        Args:
            sent: Number of bytes sent towards the proxy
            received: Number of bytes received from the proxy
        """
        with self._lock:
            self.total_bytes_sent += sent
            self.total_bytes_received += received
            second = int(time.time())
            if self.bandwidth_history and self.bandwidth_history[-1][1] == second:
                bytes_, _ = self.bandwidth_history.pop()
                self.bandwidth_history.append((bytes_ + sent + received, second))
            else:
                self.bandwidth_history.append((sent + received, second))

    def get_bandwidth(self) -> float:
        """Calculate current bandwidth usage in bytes per second.

        Returns:
            float: Average bandwidth over the last few seconds in bytes/second
        """
        with self._lock:
            cutoff = time.time() - BANDWIDTH_WINDOW
            total_bytes = sum(bytes_ for bytes_, ts in self.bandwidth_history if ts > cutoff)
            return total_bytes / BANDWIDTH_WINDOW

    def uptime(self) -> timedelta:
        """Time elapsed since the tracker was created."""
        return datetime.now(tz=UTC) - self.start_time

    def connection_started(self) -> None:
        """Count a newly accepted connection."""
        with self._lock:
            self.active_connections += 1
            self.total_connections += 1

    def connection_ended(self, *, failed: bool = False) -> None:
        """Count a finished connection."""
        with self._lock:
            self.active_connections -= 1
            if failed:
                self.failed_connections += 1


# Global statistics object
relay_stats = RelayStats()
