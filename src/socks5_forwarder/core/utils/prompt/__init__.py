"""Terminal UI components."""

from socks5_forwarder.core.utils.prompt.forwarder_ui import ForwarderUI, create_forwarder_ui

__all__ = ["create_forwarder_ui", "ForwarderUI"]
