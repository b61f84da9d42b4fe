"""
Tests for the FastAPI application.

These tests cover:
1. Health, status and history endpoints
2. The WebSocket front end reporting an unreachable IN server
3. Rejecting a second concurrent front end
4. End-to-end forwarding through live IN and OUT servers
5. Oversized messages and shutdown closing the front end
"""

import base64

import pytest
from fastapi import WebSocketDisconnect, status
from fastapi.testclient import TestClient

from wsbridge.config.app_settings import BridgeSettings
from wsbridge.main import create_app
from wsbridge.servers.bridge_server import BridgeServer
from wsbridge.servers.bridge_session import IN_CONNECT_ERROR


def make_bridge(in_endpoint, out_endpoint, **overrides) -> BridgeServer:
    values = {"connect_timeout": 1.0, "reconnect_interval": 0, "poll_interval": 0.01}
    values.update(overrides)
    settings = BridgeSettings(**values)
    return BridgeServer(in_endpoint, out_endpoint, settings=settings)


@pytest.fixture
def unreachable_bridge(unreachable_endpoint, second_unreachable_endpoint):
    return make_bridge(unreachable_endpoint, second_unreachable_endpoint)


class TestRestEndpoints:
    def test_health(self, unreachable_bridge):
        with TestClient(create_app(unreachable_bridge)) as client:
            response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_status(self, unreachable_bridge):
        with TestClient(create_app(unreachable_bridge)) as client:
            body = client.get("/api/status").json()

        assert body["session_active"] is False
        assert body["sessions_served"] == 0
        assert [leg["status"] for leg in body["legs"]] == ["disconnected", "disconnected"]

    def test_history_is_base64(self, unreachable_bridge):
        unreachable_bridge.history.extend([b"\x00\x01", b"pong"])

        with TestClient(create_app(unreachable_bridge)) as client:
            body = client.get("/api/history").json()

        assert body == [
            {"type": "Outbound", "data": base64.b64encode(b"\x00\x01").decode("ascii")},
            {"type": "Outbound", "data": base64.b64encode(b"pong").decode("ascii")},
        ]

    def test_lifespan_stops_bridge(self, unreachable_bridge):
        with TestClient(create_app(unreachable_bridge)):
            assert not unreachable_bridge.shutdown.is_set()

        assert unreachable_bridge.shutdown.is_set()


class TestWebSocketFrontend:
    def test_unreachable_in_server_reports_error(self, unreachable_bridge):
        with TestClient(create_app(unreachable_bridge)) as client:
            with client.websocket_connect("/api/ws") as ws:
                ws.send_bytes(b"hello")
                assert ws.receive_text() == IN_CONNECT_ERROR

                ws.send_text("again")
                assert ws.receive_text() == IN_CONNECT_ERROR

    def test_second_client_rejected(self, unreachable_bridge):
        with TestClient(create_app(unreachable_bridge)) as client:
            with client.websocket_connect("/api/ws") as first:
                # The diagnostic proves the first session is established
                first.send_bytes(b"hello")
                assert first.receive_text() == IN_CONNECT_ERROR

                with pytest.raises(WebSocketDisconnect) as exc_info:
                    with client.websocket_connect("/api/ws") as second:
                        second.receive_bytes()

                assert exc_info.value.code == status.WS_1013_TRY_AGAIN_LATER

    def test_forwards_both_directions(self, tcp_server, second_tcp_server):
        bridge = make_bridge(tcp_server.endpoint, second_tcp_server.endpoint)

        with TestClient(create_app(bridge)) as client:
            with client.websocket_connect("/api/ws") as ws:
                ws.send_bytes(b"ping")
                in_conn = tcp_server.accept()
                assert tcp_server.recv_exactly(in_conn, 4) == b"ping"

                out_conn = second_tcp_server.accept()
                out_conn.sendall(b"pong")
                assert ws.receive_bytes() == b"pong"

        assert bridge.history_snapshot() == [b"pong"]

    def test_oversized_message_reports_once(self, unreachable_endpoint, second_unreachable_endpoint):
        """A message spanning several chunks yields one diagnostic when IN is down."""
        bridge = make_bridge(unreachable_endpoint, second_unreachable_endpoint, buffer_size=4)

        with TestClient(create_app(bridge)) as client:
            with client.websocket_connect("/api/ws") as ws:
                ws.send_bytes(b"0123456789")
                assert ws.receive_text() == IN_CONNECT_ERROR

                ws.send_bytes(b"ab")
                assert ws.receive_text() == IN_CONNECT_ERROR

                assert bridge.session.messages_dropped == 2

    def test_oversized_message_forwarded_in_chunks(self, tcp_server, second_tcp_server):
        bridge = make_bridge(tcp_server.endpoint, second_tcp_server.endpoint, buffer_size=4)

        with TestClient(create_app(bridge)) as client:
            with client.websocket_connect("/api/ws") as ws:
                ws.send_bytes(b"0123456789")
                in_conn = tcp_server.accept()
                assert tcp_server.recv_exactly(in_conn, 10) == b"0123456789"

    def test_shutdown_closes_frontend(self, unreachable_bridge):
        with TestClient(create_app(unreachable_bridge)) as client:
            with client.websocket_connect("/api/ws") as ws:
                ws.send_bytes(b"hello")
                assert ws.receive_text() == IN_CONNECT_ERROR

                unreachable_bridge.shutdown.trigger()

                with pytest.raises(WebSocketDisconnect) as exc_info:
                    ws.receive_bytes()

                assert exc_info.value.code == status.WS_1001_GOING_AWAY
