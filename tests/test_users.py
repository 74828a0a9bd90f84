"""Tests for the bot-facing user endpoints."""

import pytest

from medreminder.models import CreatedVia


class TestBotAuth:
    @pytest.mark.parametrize("headers", [{}, {"X-Bot-Key": "wrong"}, {"X-Bot-Key": ""}])
    async def test_rejects_missing_or_wrong_key(self, client, user, headers):
        response = await client.get(f"/api/users/{user.uid}", headers=headers)

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid bot credentials"

    async def test_session_is_not_bot_auth(self, client, user, session_token):
        response = await client.get(
            f"/api/users/{user.uid}",
            headers={"Authorization": f"Bearer {session_token}"},
        )
        assert response.status_code == 401


class TestCreateAndLookup:
    async def test_create_user(self, client, bot_headers):
        response = await client.post(
            "/api/users",
            json={"discord_id": "1001", "timezone": "America/New_York"},
            headers=bot_headers,
        )

        assert response.status_code == 201
        data = response.json()
        assert data["discord_id"] == "1001"
        assert data["created_via"] == "discord"
        assert data["timezone"] == "America/New_York"

    async def test_duplicate_discord_id_conflicts(self, client, bot_headers):
        await client.post("/api/users", json={"discord_id": "1001"}, headers=bot_headers)

        response = await client.post(
            "/api/users", json={"discord_id": "1001"}, headers=bot_headers
        )

        assert response.status_code == 409

    async def test_get_by_uid(self, client, bot_headers, user):
        response = await client.get(f"/api/users/{user.uid}", headers=bot_headers)

        assert response.status_code == 200
        assert response.json()["uid"] == user.uid

    async def test_get_by_discord_id(self, client, bot_headers, container):
        created = await container.store.create_user(CreatedVia.DISCORD, discord_id="77")

        response = await client.get("/api/users/discord/77", headers=bot_headers)

        assert response.status_code == 200
        assert response.json()["uid"] == created.uid

    @pytest.mark.parametrize("path", ["/api/users/uid_missing", "/api/users/discord/999"])
    async def test_missing_user_is_404(self, client, bot_headers, path):
        response = await client.get(path, headers=bot_headers)
        assert response.status_code == 404


class TestUpdate:
    async def test_update_timezone_notifies(self, client, bot_headers, container, user):
        received: list[str] = []

        class Listener:
            is_open = True

            def send(self, message: str) -> None:
                received.append(message)

        container.registry.register(user.uid, Listener())

        response = await client.patch(
            f"/api/users/{user.uid}/settings",
            json={"timezone": "Asia/Tokyo"},
            headers=bot_headers,
        )

        assert response.status_code == 200
        assert response.json()["timezone"] == "Asia/Tokyo"
        assert len(received) == 1
        assert '"type":"user_updated"' in received[0]

    async def test_update_missing_user(self, client, bot_headers):
        response = await client.patch(
            "/api/users/uid_missing/settings",
            json={"timezone": "UTC"},
            headers=bot_headers,
        )
        assert response.status_code == 404


class TestLinkDiscord:
    async def test_link_and_unlink(self, client, bot_headers, user):
        linked = await client.post(
            f"/api/users/{user.uid}/link-discord",
            json={"discord_id": "555"},
            headers=bot_headers,
        )
        assert linked.status_code == 200
        assert linked.json()["discord_id"] == "555"

        unlinked = await client.delete(
            f"/api/users/{user.uid}/link-discord", headers=bot_headers
        )
        assert unlinked.status_code == 200
        assert unlinked.json()["discord_id"] is None

    async def test_link_conflict(self, client, bot_headers, container, user):
        await container.store.create_user(CreatedVia.DISCORD, discord_id="555")

        response = await client.post(
            f"/api/users/{user.uid}/link-discord",
            json={"discord_id": "555"},
            headers=bot_headers,
        )
        assert response.status_code == 409

    async def test_relinking_same_id_is_idempotent(self, client, bot_headers, user):
        for _ in range(2):
            response = await client.post(
                f"/api/users/{user.uid}/link-discord",
                json={"discord_id": "555"},
                headers=bot_headers,
            )
            assert response.status_code == 200

    async def test_link_missing_user(self, client, bot_headers):
        response = await client.post(
            "/api/users/uid_missing/link-discord",
            json={"discord_id": "555"},
            headers=bot_headers,
        )
        assert response.status_code == 404


class TestDelete:
    async def test_delete_cascades(self, client, bot_headers, container, user, session_token):
        code = await container.link_codes.issue_code(user.uid)
        container.follow_ups.schedule(user.uid, "med-1")

        response = await client.delete(f"/api/users/{user.uid}", headers=bot_headers)

        assert response.status_code == 200
        assert response.json() == {"deleted": True, "uid": user.uid}
        assert await container.sessions.validate_session(session_token) is None
        assert await container.link_codes.validate_code(code.code) is None
        assert not container.follow_ups.is_pending(user.uid, "med-1")

    async def test_delete_missing_user(self, client, bot_headers):
        response = await client.delete("/api/users/uid_missing", headers=bot_headers)
        assert response.status_code == 404
