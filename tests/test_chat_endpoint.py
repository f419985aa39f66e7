"""
Tests for the /ws endpoint and the observability routes.
"""

import pytest
from starlette.websockets import WebSocketDisconnect

from chat_gateway.components.core.constants import WSCloseCode


def claim(ws, name, device=None, reconnect=False):
    ws.send_json({"type": "claim_identity", "requestedName": name, "device": device, "reconnectHint": reconnect})
    confirmed = ws.receive_json()
    replay = ws.receive_json()
    return confirmed, replay


class TestChatEndpoint:
    def test_greeting_and_claim(self, client, app_manager):
        with client.websocket_connect("/ws") as ws:
            info = ws.receive_json()
            assert info == {"type": "server_info", "startTime": app_manager.server_start_time}

            confirmed, replay = claim(ws, "alice", "dev-1")
            assert confirmed["type"] == "identity_confirmed"
            assert confirmed["name"] == "alice"
            assert replay["type"] == "history_replay"
            assert ws.receive_json()["text"] == "[alice] joined the chat."

    def test_chat_round_trip(self, client):
        with client.websocket_connect("/ws") as alice, client.websocket_connect("/ws?mode=plain") as bob:
            alice.receive_json()
            bob.receive_json()
            claim(alice, "alice")
            alice.receive_json()
            claim(bob, "bob")
            bob.receive_json()
            assert alice.receive_json()["text"] == "[bob] joined the chat."

            alice.send_json({"type": "chat", "text": "hi bob"})
            assert bob.receive_json()["text"] == "[alice]: hi bob"
            assert alice.receive_json()["text"] == "[alice]: hi bob"

    def test_plain_ping(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_text("ping")
            assert ws.receive_json()["type"] == "pong"

    def test_malformed_frame(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_text("{nope")
            assert ws.receive_json() == {"type": "error", "reason": "Malformed JSON"}

    def test_oversized_frame_closes(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_text("x" * 20_000)
            with pytest.raises(WebSocketDisconnect) as exc:
                ws.receive_json()
            assert exc.value.code == WSCloseCode.MESSAGE_TOO_BIG

    def test_logout_closes_normally(self, client, app_manager):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            claim(ws, "alice", "dev-1")
            ws.receive_json()
            ws.send_json({"type": "logout"})
            assert ws.receive_json() == {"type": "logged_out"}
            with pytest.raises(WebSocketDisconnect) as exc:
                ws.receive_json()
            assert exc.value.code == WSCloseCode.NORMAL
        assert app_manager.registry.is_available("alice")

    def test_disconnect_enters_grace(self, client, app_manager):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            claim(ws, "alice", "dev-1")
            ws.receive_json()
        assert app_manager.live_count == 0
        assert app_manager.grace.pending_name("dev-1") == "alice"

        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            confirmed, _ = claim(ws, "alice", "dev-1", reconnect=True)
            assert confirmed["reconnected"] is True

    def test_disallowed_origin_is_refused(self, client, app_manager):
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect("/ws", headers={"origin": "http://evil.example"}):
                pass
        assert app_manager.metrics.get_snapshot_sync()["connections_rejected_origin"] == 1

    def test_admin_kick_reaches_socket(self, client, admin_headers):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            claim(ws, "alice", "dev-1")
            ws.receive_json()

            response = client.post("/api/admin/kick", json={"username": "alice", "seconds": 0}, headers=admin_headers)
            assert response.status_code == 200

            assert ws.receive_json() == {"type": "force_closed", "reason": "kicked"}
            with pytest.raises(WebSocketDisconnect) as exc:
                ws.receive_json()
            assert exc.value.code == WSCloseCode.KICKED


class TestObservability:
    def test_healthz(self, client):
        response = client.get("/healthz")
        assert response.status_code == 200
        assert response.text == "OK"

    def test_health(self, client):
        data = client.get("/ws/health").json()
        assert data["status"] == "healthy"
        assert data["service"] == "chat-gateway"
        assert data["live_sessions"] == 0

    def test_metrics(self, client):
        response = client.get("/ws/metrics")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert "chatrelay_sessions_live 0" in response.text
