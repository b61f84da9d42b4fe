"""Shared fixtures: loopback TCP servers and unreachable endpoints."""

import socket

import pytest

from wsbridge.models.bridge_types import Endpoint


class TcpServer:
    """A listening loopback socket standing in for an IN or OUT server."""

    def __init__(self):
        self.listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self.listener.bind(("127.0.0.1", 0))
        self.listener.listen(5)
        self.listener.settimeout(5.0)
        self.clients: list[socket.socket] = []

    @property
    def endpoint(self) -> Endpoint:
        return Endpoint("127.0.0.1", self.listener.getsockname()[1])

    def accept(self) -> socket.socket:
        conn, _ = self.listener.accept()
        conn.settimeout(5.0)
        self.clients.append(conn)
        return conn

    def recv_exactly(self, conn: socket.socket, size: int) -> bytes:
        data = b""
        while len(data) < size:
            chunk = conn.recv(size - len(data))
            if not chunk:
                break
            data += chunk
        return data

    def close(self):
        for conn in self.clients:
            conn.close()
        self.listener.close()


@pytest.fixture
def tcp_server():
    server = TcpServer()
    yield server
    server.close()


@pytest.fixture
def second_tcp_server():
    server = TcpServer()
    yield server
    server.close()


def free_port() -> int:
    """A loopback port with nothing listening on it (connects are refused)."""
    probe = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    probe.bind(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()
    return port


@pytest.fixture
def unreachable_endpoint() -> Endpoint:
    return Endpoint("127.0.0.1", free_port())


@pytest.fixture
def second_unreachable_endpoint() -> Endpoint:
    return Endpoint("127.0.0.1", free_port())
