"""Live dashboard for the forwarder."""

import threading
import time
from typing import Final

from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.spinner import Spinner
from rich.table import Table
from rich.text import Text

from socks5_forwarder.core.lib.relay_stats import RelayStats, relay_stats
from socks5_forwarder.core.utils.utils import format_bytes

console = Console()

BANDWIDTH_THRESHOLD: Final = 100  # bytes


class ForwarderUI:
    """Render forwarder statistics in a rich live panel."""

    def __init__(
        self,
        listen: str,
        target: str,
        proxy: str,
        stats: RelayStats | None = None,
    ) -> None:
        """Initialize the dashboard.

        Args:
            listen: Address the forwarder listens on
            target: Fixed target address
            proxy: SOCKS5 proxy address
            stats: Statistics to display, defaults to the global tracker
        """
        self.listen = listen
        self.target = target
        self.proxy = proxy
        self.stats = stats or relay_stats
        self.running = False
        self._last_bandwidth = 0.0
        self._start_time = time.monotonic()
        self._refresh_rate = 0.5
        self._spinner = Spinner("dots", text="")
        self._thread: threading.Thread | None = None

    def _generate_table(self) -> Table:
        """Generate statistics table."""
        table = Table(show_header=False, box=None, padding=(0, 1))
        table.add_column("Property", style="cyan", no_wrap=True)
        table.add_column("Value", style="green", no_wrap=True)

        bandwidth = self.stats.get_bandwidth()
        # Avoid jitter on small changes
        if abs(bandwidth - self._last_bandwidth) > BANDWIDTH_THRESHOLD:
            self._last_bandwidth = bandwidth

        elapsed = time.monotonic() - self._start_time
        spinner_text = self._spinner.render(elapsed)

        table.add_row("Target", self.target)
        table.add_row("Proxy", self.proxy)
        table.add_row("Uptime", str(self.stats.uptime()).split(".")[0])
        table.add_row("Bandwidth", f"{spinner_text} {format_bytes(self._last_bandwidth)}/s")
        table.add_row("Active Connections", str(self.stats.active_connections))
        table.add_row("Total Connections", str(self.stats.total_connections))
        table.add_row("Failed Connections", str(self.stats.failed_connections))
        table.add_row("Sent", format_bytes(self.stats.total_bytes_sent))
        table.add_row("Received", format_bytes(self.stats.total_bytes_received))
        return table

    def _generate_display(self) -> Panel:
        """Generate the main display panel."""
        title = Text(f"SOCKS5 Forwarder: {self.listen}", style="bold cyan")
        return Panel(
            self._generate_table(),
            title=title,
            subtitle="Press Ctrl+C to exit",
            border_style="blue",
            padding=(1, 2),
        )

    def run(self) -> None:
        """Refresh the panel until ``running`` is cleared by :meth:`stop`."""
        with Live(
            self._generate_display(),
            console=console,
            refresh_per_second=4,
            transient=False,
            auto_refresh=False,
        ) as live:
            while self.running:
                live.update(self._generate_display(), refresh=True)
                time.sleep(self._refresh_rate)

    def start(self) -> threading.Thread:
        """Run the dashboard in a daemon thread."""
        self.running = True
        self._thread = threading.Thread(target=self.run, name="dashboard", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self) -> None:
        """Stop refreshing and wait for the dashboard thread."""
        self.running = False
        if self._thread is not None:
            self._thread.join(self._refresh_rate * 4)
            self._thread = None


def create_forwarder_ui(listen: str, target: str, proxy: str) -> ForwarderUI:
    """Create the dashboard for the global statistics."""
    return ForwarderUI(listen, target, proxy)
