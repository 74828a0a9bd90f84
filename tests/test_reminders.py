"""Tests for follow-up and notify endpoints."""

import json


class Listener:
    is_open = True

    def __init__(self):
        self.sent: list[dict] = []

    def send(self, message: str) -> None:
        self.sent.append(json.loads(message))


class TestFollowUpEndpoints:
    async def test_schedule_and_cancel(self, client, bot_headers, container, user):
        scheduled = await client.post(
            "/api/reminders/follow-up",
            json={"uid": user.uid, "item_id": "med-1", "delay_minutes": 30},
            headers=bot_headers,
        )
        assert scheduled.status_code == 201
        assert scheduled.json()["item_id"] == "med-1"
        assert container.follow_ups.is_pending(user.uid, "med-1")

        cancelled = await client.delete(
            f"/api/reminders/follow-up/{user.uid}/med-1", headers=bot_headers
        )
        assert cancelled.status_code == 200
        assert cancelled.json() == {"cancelled": True}
        assert not container.follow_ups.is_pending(user.uid, "med-1")

    async def test_cancel_nothing_pending(self, client, bot_headers, user):
        response = await client.delete(
            f"/api/reminders/follow-up/{user.uid}/med-1", headers=bot_headers
        )
        assert response.status_code == 404

    async def test_schedule_for_unknown_user(self, client, bot_headers):
        response = await client.post(
            "/api/reminders/follow-up",
            json={"uid": "uid_missing", "item_id": "med-1"},
            headers=bot_headers,
        )
        assert response.status_code == 404

    async def test_rejects_non_positive_delay(self, client, bot_headers, user):
        response = await client.post(
            "/api/reminders/follow-up",
            json={"uid": user.uid, "item_id": "med-1", "delay_minutes": 0},
            headers=bot_headers,
        )
        assert response.status_code == 422

    async def test_requires_bot_key(self, client, user):
        response = await client.post(
            "/api/reminders/follow-up",
            json={"uid": user.uid, "item_id": "med-1"},
        )
        assert response.status_code == 401


class TestNotifyEndpoint:
    async def test_notify_delivers_to_user(self, client, bot_headers, container):
        listener = Listener()
        container.registry.register("uid_a", listener)

        response = await client.post(
            "/api/notify/uid_a",
            json={"kind": "medication_deleted", "payload": {"id": "med-1"}},
            headers=bot_headers,
        )

        assert response.json() == {"delivered": 1}
        assert listener.sent[0]["type"] == "medication_deleted"
        assert listener.sent[0]["uid"] == "uid_a"
        assert listener.sent[0]["data"] == {"id": "med-1"}

    async def test_notify_offline_user(self, client, bot_headers):
        response = await client.post(
            "/api/notify/uid_offline",
            json={"kind": "medication_added"},
            headers=bot_headers,
        )

        assert response.status_code == 200
        assert response.json() == {"delivered": 0}

    async def test_unknown_kind_rejected(self, client, bot_headers):
        response = await client.post(
            "/api/notify/uid_a", json={"kind": "nonsense"}, headers=bot_headers
        )
        assert response.status_code == 422

    async def test_broadcast(self, client, bot_headers, container):
        a, b = Listener(), Listener()
        container.registry.register("uid_a", a)
        container.registry.register("uid_b", b)

        response = await client.post(
            "/api/notify",
            json={"kind": "system_notice", "payload": {"text": "maintenance"}},
            headers=bot_headers,
        )

        assert response.json() == {"delivered": 2}
        assert a.sent[0]["data"] == {"text": "maintenance"}
        assert b.sent[0]["type"] == "system_notice"
