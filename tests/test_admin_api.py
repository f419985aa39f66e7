"""
Tests for the admin HTTP API.
"""

from unittest.mock import patch

import jwt

from shared.config.settings import settings
from shared.security.auth import sign_admin_token


class TestAdminAuth:
    def test_disabled_without_password(self, client, monkeypatch):
        monkeypatch.setattr(settings, "admin_password", "")
        assert client.post("/api/admin/login", json={"password": "x"}).status_code == 503
        assert client.get("/api/admin/stats").status_code == 503

    def test_login_success(self, client, admin_password):
        response = client.post("/api/admin/login", json={"password": admin_password})
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        claims = jwt.decode(
            data["token"],
            settings.jwt_secret,
            algorithms=["HS256"],
            audience=settings.jwt_audience,
        )
        assert claims["iss"] == settings.jwt_issuer

    def test_login_wrong_password(self, client, admin_password):
        response = client.post("/api/admin/login", json={"password": "wrong"})
        assert response.status_code == 401

    def test_failed_login_is_audited(self, client, admin_password):
        with patch("chat_gateway.admin.routes.audit_auth_event") as audit:
            client.post("/api/admin/login", json={"password": "wrong"})
        audit.assert_called_once()
        assert audit.call_args.args[0] == "LOGIN_FAILED"
        assert audit.call_args.kwargs["success"] is False

    def test_login_is_rate_limited(self, client, admin_password):
        statuses = [
            client.post("/api/admin/login", json={"password": "wrong"}).status_code
            for _ in range(6)
        ]
        assert statuses[:5] == [401] * 5
        assert statuses[5] == 429

    def test_missing_token(self, client, admin_password):
        assert client.get("/api/admin/stats").status_code == 401

    def test_expired_token(self, client, admin_password):
        token = sign_admin_token(ttl_seconds=-10)
        response = client.get("/api/admin/verify", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_verify(self, client, admin_headers):
        response = client.get("/api/admin/verify", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["valid"] is True


class TestAdminOperations:
    def test_stats(self, client, admin_headers):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_json({"type": "claim_identity", "requestedName": "alice", "device": "dev-1"})
            ws.receive_json()
            ws.receive_json()
            ws.receive_json()

            data = client.get("/api/admin/stats", headers=admin_headers).json()
            assert data["userCount"] == 1
            assert data["users"][0]["name"] == "alice"
            assert data["messages"][0]["text"] == "[alice] joined the chat."

    def test_kick_unknown_user(self, client, admin_headers):
        response = client.post("/api/admin/kick", json={"username": "ghost"}, headers=admin_headers)
        assert response.status_code == 404

    def test_kick_negative_duration(self, client, admin_headers, app_manager):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_json({"type": "claim_identity", "requestedName": "alice"})
            ws.receive_json()
            response = client.post(
                "/api/admin/kick",
                json={"username": "alice", "seconds": -5},
                headers=admin_headers,
            )
            assert response.status_code == 422

    def test_ban_and_unban(self, client, admin_headers, app_manager):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_json({"type": "claim_identity", "requestedName": "alice", "device": "dev-1"})
            ws.receive_json()
            response = client.post(
                "/api/admin/kick",
                json={"username": "alice", "seconds": 120},
                headers=admin_headers,
            )
            assert response.json()["banned"] is True

        assert app_manager.bans.check("dev-1").banned
        response = client.post("/api/admin/unban", json={"username": "alice"}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["device"] == "dev-1"
        assert not app_manager.bans.check("dev-1").banned

    def test_unban_unknown(self, client, admin_headers):
        response = client.post("/api/admin/unban", json={"username": "ghost"}, headers=admin_headers)
        assert response.status_code == 404

    def test_unban_requires_target(self, client, admin_headers):
        response = client.post("/api/admin/unban", json={}, headers=admin_headers)
        assert response.status_code == 422

    def test_broadcast_and_clear_history(self, client, admin_headers, app_manager):
        response = client.post("/api/admin/broadcast", json={"message": "hello all"}, headers=admin_headers)
        assert response.json()["line"] == "[server]: hello all"
        assert app_manager.hub.history_size == 1

        response = client.post("/api/admin/clear-history", headers=admin_headers)
        assert response.json()["count"] == 1
        assert app_manager.hub.history_size == 0

    def test_empty_broadcast(self, client, admin_headers):
        response = client.post("/api/admin/broadcast", json={"message": "  "}, headers=admin_headers)
        assert response.status_code == 422

    def test_kick_all(self, client, admin_headers):
        response = client.post("/api/admin/kick-all", headers=admin_headers)
        assert response.json() == {"success": True, "count": 0}
