"""Shared fixtures: a scripted SOCKS5 proxy, an upstream target and the forwarder."""

import socket
import socketserver
import struct
import threading

import pytest

from socks5_forwarder.core.lib.listener import ForwarderServer, create_server

IO_TIMEOUT = 5.0


def recv_exact(sock: socket.socket, size: int) -> bytes:
    buf = b""
    while len(buf) < size:
        chunk = sock.recv(size - len(buf))
        if not chunk:
            raise ConnectionError("peer closed")
        buf += chunk
    return buf


def recv_all(sock: socket.socket) -> bytes:
    chunks = []
    while chunk := sock.recv(4096):
        chunks.append(chunk)
    return b"".join(chunks)


def _pipe(src: socket.socket, dst: socket.socket) -> None:
    try:
        while data := src.recv(4096):
            dst.sendall(data)
        dst.shutdown(socket.SHUT_WR)
    except OSError:
        pass


class _FakeSocksHandler(socketserver.BaseRequestHandler):
    server: "FakeSocksProxy"

    def handle(self) -> None:
        sock = self.request
        proxy = self.server

        _, count = recv_exact(sock, 2)
        methods = list(recv_exact(sock, count))
        proxy.greetings.append(methods)

        method = proxy.method
        if method is None:
            method = 0x02 if 0x02 in methods else 0x00
        sock.sendall(bytes([5, method]))
        if method == 0xFF:
            return

        if method == 0x02:
            _, ulen = recv_exact(sock, 2)
            username = recv_exact(sock, ulen).decode()
            (plen,) = recv_exact(sock, 1)
            password = recv_exact(sock, plen).decode()
            proxy.auth_requests.append((username, password))
            sock.sendall(bytes([1, proxy.auth_status]))
            if proxy.auth_status:
                return

        header = recv_exact(sock, 4)
        atyp = header[3]
        if atyp == 0x01:
            addr = recv_exact(sock, 4)
        elif atyp == 0x04:
            addr = recv_exact(sock, 16)
        else:
            length = recv_exact(sock, 1)
            addr = length + recv_exact(sock, length[0])
        request = header + addr + recv_exact(sock, 2)
        proxy.connect_requests.append(request)

        if proxy.reply_code:
            sock.sendall(bytes([5, proxy.reply_code, 0, 1, 0, 0, 0, 0, 0, 0]))
            return

        with socket.create_connection(proxy.upstream, timeout=IO_TIMEOUT) as upstream:
            upstream.settimeout(None)
            bound_port = upstream.getsockname()[1]
            sock.sendall(bytes([5, 0, 0, 1]) + socket.inet_aton("127.0.0.1") + struct.pack("!H", bound_port))
            proxy.established.append(request)
            pump = threading.Thread(target=_pipe, args=(sock, upstream), daemon=True)
            pump.start()
            _pipe(upstream, sock)
            pump.join(IO_TIMEOUT)


class FakeSocksProxy(socketserver.ThreadingMixIn, socketserver.TCPServer):
    """SOCKS5 server that records requests and relays to a fixed upstream."""

    allow_reuse_address = True
    daemon_threads = True

    def __init__(
        self,
        upstream: tuple[str, int] | None = None,
        method: int | None = None,
        auth_status: int = 0,
        reply_code: int = 0,
    ) -> None:
        self.upstream = upstream
        self.method = method
        self.auth_status = auth_status
        self.reply_code = reply_code
        self.greetings: list[list[int]] = []
        self.auth_requests: list[tuple[str, str]] = []
        self.connect_requests: list[bytes] = []
        self.established: list[bytes] = []
        super().__init__(("127.0.0.1", 0), _FakeSocksHandler)

    @property
    def address(self) -> str:
        return f"127.0.0.1:{self.server_address[1]}"


class _ReplyAfterEOFHandler(socketserver.BaseRequestHandler):
    """Read until the client half-closes, then answer and close."""

    def handle(self) -> None:
        data = recv_all(self.request)
        self.server.received.append(data)
        self.request.sendall(b"echo:" + data)


class UpstreamServer(socketserver.ThreadingMixIn, socketserver.TCPServer):
    allow_reuse_address = True
    daemon_threads = True

    def __init__(self) -> None:
        self.received: list[bytes] = []
        super().__init__(("127.0.0.1", 0), _ReplyAfterEOFHandler)


def _start(server: socketserver.BaseServer) -> threading.Thread:
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return thread


def _stop(server: socketserver.BaseServer, thread: threading.Thread) -> None:
    server.shutdown()
    server.server_close()
    thread.join(IO_TIMEOUT)


@pytest.fixture
def upstream_server():
    server = UpstreamServer()
    thread = _start(server)
    yield server
    _stop(server, thread)


@pytest.fixture
def make_proxy(upstream_server):
    """Start fake SOCKS5 proxies relaying to ``upstream_server``."""
    started = []

    def factory(**kwargs) -> FakeSocksProxy:
        kwargs.setdefault("upstream", upstream_server.server_address)
        proxy = FakeSocksProxy(**kwargs)
        started.append((proxy, _start(proxy)))
        return proxy

    yield factory
    for proxy, thread in started:
        _stop(proxy, thread)


@pytest.fixture
def make_forwarder():
    """Start forwarders on an ephemeral localhost port."""
    started = []

    def factory(target, proxy_config, stats=None) -> ForwarderServer:
        server = create_server("127.0.0.1:0", target, proxy_config, stats)
        started.append((server, _start(server)))
        return server

    yield factory
    for server, thread in started:
        _stop(server, thread)


@pytest.fixture
def exchange():
    """Send a payload, half-close, and return everything received until EOF."""

    def run(server_address: tuple[str, int], payload: bytes) -> bytes:
        with socket.create_connection(server_address[:2], timeout=IO_TIMEOUT) as sock:
            sock.sendall(payload)
            sock.shutdown(socket.SHUT_WR)
            return recv_all(sock)

    return run
