"""Tests for the /ws push channel.

Driven through Starlette's TestClient, which runs the app (lifespan
included) on its own event loop.
"""

import pytest
from starlette.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from medreminder.main import create_app


@pytest.fixture
def test_client(sync_container):
    with TestClient(create_app(sync_container)) as tc:
        yield tc


def _signup(test_client) -> tuple[str, str]:
    response = test_client.post("/api/auth/signup")
    assert response.status_code == 201
    body = response.json()
    return body["uid"], body["session_token"]


class TestHandshake:
    def test_missing_token_closes_1008(self, test_client):
        with test_client.websocket_connect("/ws") as ws:
            with pytest.raises(WebSocketDisconnect) as exc:
                ws.receive_json()
        assert exc.value.code == 1008

    def test_invalid_token_closes_4401(self, test_client):
        with test_client.websocket_connect("/ws?token=bogus") as ws:
            with pytest.raises(WebSocketDisconnect) as exc:
                ws.receive_json()
        assert exc.value.code == 4401

    def test_revoked_token_closes_4401(self, test_client, sync_container):
        uid, token = _signup(test_client)
        test_client.post("/api/auth/logout", headers={"Authorization": f"Bearer {token}"})
        test_client.cookies.clear()

        with test_client.websocket_connect(f"/ws?token={token}") as ws:
            with pytest.raises(WebSocketDisconnect) as exc:
                ws.receive_json()
        assert exc.value.code == 4401
        assert sync_container.registry.connection_count(uid) == 0

    def test_connected_acknowledgement(self, test_client, sync_container):
        uid, token = _signup(test_client)

        with test_client.websocket_connect(f"/ws?token={token}") as ws:
            message = ws.receive_json()
            assert message["type"] == "connected"
            assert message["uid"] == uid
            assert "timestamp" in message
            assert sync_container.registry.connection_count(uid) == 1

    def test_session_cookie_is_accepted(self, test_client):
        uid, _ = _signup(test_client)

        # Signup left the session cookie on the client
        with test_client.websocket_connect("/ws") as ws:
            assert ws.receive_json()["uid"] == uid


class TestMessaging:
    def test_ping_pong(self, test_client):
        _, token = _signup(test_client)

        with test_client.websocket_connect(f"/ws?token={token}") as ws:
            ws.receive_json()
            ws.send_json({"type": "ping"})
            assert ws.receive_json()["type"] == "pong"

    def test_malformed_frames_are_ignored(self, test_client):
        _, token = _signup(test_client)

        with test_client.websocket_connect(f"/ws?token={token}") as ws:
            ws.receive_json()
            ws.send_text("not json")
            ws.send_json({"no_type": True})
            ws.send_bytes(b"\x00\x01")
            ws.send_json({"type": "ping"})
            assert ws.receive_json()["type"] == "pong"

    def test_notify_reaches_every_open_connection(self, test_client, bot_headers):
        uid, token = _signup(test_client)

        with test_client.websocket_connect(f"/ws?token={token}") as first:
            first.receive_json()
            with test_client.websocket_connect(f"/ws?token={token}") as second:
                second.receive_json()

                response = test_client.post(
                    f"/api/notify/{uid}",
                    json={"kind": "medication_added", "payload": {"name": "Aspirin"}},
                    headers=bot_headers,
                )
                assert response.status_code == 200
                assert response.json() == {"delivered": 2}

                for ws in (first, second):
                    message = ws.receive_json()
                    assert message["type"] == "medication_added"
                    assert message["data"] == {"name": "Aspirin"}

    def test_events_for_other_users_are_not_delivered(self, test_client, bot_headers):
        uid, token = _signup(test_client)
        test_client.cookies.clear()
        other_uid, _ = _signup(test_client)

        with test_client.websocket_connect(f"/ws?token={token}") as ws:
            ws.receive_json()

            test_client.post(
                f"/api/notify/{other_uid}",
                json={"kind": "medication_deleted"},
                headers=bot_headers,
            )
            test_client.post(
                f"/api/notify/{uid}",
                json={"kind": "medication_updated"},
                headers=bot_headers,
            )

            assert ws.receive_json()["type"] == "medication_updated"


class TestLifecycle:
    def test_close_unregisters(self, test_client, sync_container):
        uid, token = _signup(test_client)

        with test_client.websocket_connect(f"/ws?token={token}") as ws:
            ws.receive_json()
            assert sync_container.registry.connection_count(uid) == 1

        assert sync_container.registry.connection_count(uid) == 0
        assert uid not in sync_container.registry

    def test_idle_connection_closes_4408(self, sync_container):
        sync_container.settings = sync_container.settings.model_copy(
            update={"push_idle_timeout_seconds": 0.3}
        )
        with TestClient(create_app(sync_container)) as tc:
            uid, token = _signup(tc)

            with tc.websocket_connect(f"/ws?token={token}") as ws:
                ws.receive_json()
                with pytest.raises(WebSocketDisconnect) as exc:
                    ws.receive_json()

        assert exc.value.code == 4408
        assert sync_container.registry.connection_count(uid) == 0

    def test_deleting_account_closes_socket(self, test_client, sync_container, bot_headers):
        uid, token = _signup(test_client)

        with test_client.websocket_connect(f"/ws?token={token}") as ws:
            ws.receive_json()

            response = test_client.delete(f"/api/users/{uid}", headers=bot_headers)
            assert response.status_code == 200
            assert uid not in sync_container.registry

            broadcast = test_client.post(
                "/api/notify", json={"kind": "system_notice"}, headers=bot_headers
            )
            assert broadcast.json() == {"delivered": 0}

            with pytest.raises(WebSocketDisconnect) as exc:
                ws.receive_json()

        assert exc.value.code == 4401
        assert sync_container.registry.connection_count(uid) == 0

    def test_logout_closes_only_that_sessions_socket(self, test_client, bot_headers):
        uid, token = _signup(test_client)
        test_client.cookies.clear()
        connect = test_client.post(
            "/api/connect/token", json={"uid": uid}, headers=bot_headers
        ).json()
        other_token = test_client.post(
            "/api/connect/redeem", json={"token": connect["token"]}
        ).json()["session_token"]
        test_client.cookies.clear()

        with test_client.websocket_connect(f"/ws?token={token}") as revoked:
            revoked.receive_json()
            with test_client.websocket_connect(f"/ws?token={other_token}") as kept:
                kept.receive_json()

                test_client.post(
                    "/api/auth/logout", headers={"Authorization": f"Bearer {token}"}
                )
                with pytest.raises(WebSocketDisconnect) as exc:
                    revoked.receive_json()
                assert exc.value.code == 4401

                response = test_client.post(
                    f"/api/notify/{uid}",
                    json={"kind": "medication_added"},
                    headers=bot_headers,
                )
                assert response.json() == {"delivered": 1}
                assert kept.receive_json()["type"] == "medication_added"

    def test_health_reports_connections(self, test_client):
        _, token = _signup(test_client)

        with test_client.websocket_connect(f"/ws?token={token}") as ws:
            ws.receive_json()
            body = test_client.get("/health").json()
            assert body["websocket"] == {
                "active": True,
                "total_connections": 1,
                "users": 1,
            }
