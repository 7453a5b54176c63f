import threading
import time
from datetime import timedelta

from socks5_forwarder.core.lib.relay_stats import BANDWIDTH_WINDOW, RelayStats


def test_connection_counters():
    stats = RelayStats()

    stats.connection_started()
    stats.connection_started()
    stats.connection_ended()
    stats.connection_ended(failed=True)

    assert stats.active_connections == 0
    assert stats.total_connections == 2
    assert stats.failed_connections == 1


def test_bytes_and_bandwidth():
    stats = RelayStats()

    stats.update_bytes(sent=1000, received=0)
    stats.update_bytes(sent=0, received=4000)

    assert stats.total_bytes_sent == 1000
    assert stats.total_bytes_received == 4000
    assert stats.get_bandwidth() == 1000


def test_bandwidth_counts_every_chunk_in_the_window():
    stats = RelayStats()

    for _ in range(100):
        stats.update_bytes(sent=1000, received=0)

    assert stats.get_bandwidth() == 100 * 1000 / BANDWIDTH_WINDOW
    assert len(stats.bandwidth_history) <= 2


def test_old_traffic_leaves_the_window(monkeypatch):
    stats = RelayStats()
    now = time.time()

    monkeypatch.setattr(time, "time", lambda: now - 30)
    stats.update_bytes(sent=5000, received=0)
    monkeypatch.setattr(time, "time", lambda: now)
    stats.update_bytes(sent=500, received=0)

    assert stats.get_bandwidth() == 500 / BANDWIDTH_WINDOW


def test_uptime():
    stats = RelayStats()
    stats.start_time -= timedelta(minutes=2)

    assert stats.uptime() >= timedelta(minutes=2)


def test_concurrent_updates():
    stats = RelayStats()

    def work():
        for _ in range(1000):
            stats.connection_started()
            stats.update_bytes(1, 1)
            stats.connection_ended()

    threads = [threading.Thread(target=work) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert stats.active_connections == 0
    assert stats.total_connections == 8000
    assert stats.total_bytes_sent == 8000
