"""Tests for rate limiting on the redemption endpoints."""

import pytest

from medreminder.middleware.rate_limit import limiter


@pytest.fixture(autouse=True)
def _enable_rate_limiting():
    """Temporarily enable rate limiting for these tests."""
    limiter.enabled = True
    limiter.reset()
    yield
    limiter.enabled = False
    limiter.reset()


class TestRedeemLimits:
    async def test_link_redeem_limited_to_ten_per_minute(self, client, bot_headers):
        statuses = []
        for _ in range(11):
            resp = await client.post(
                "/api/link/redeem",
                json={"code": "ZZZZZZ", "discord_id": "42"},
                headers=bot_headers,
            )
            statuses.append(resp.status_code)

        assert statuses == [404] * 10 + [429]
        assert resp.json()["detail"].startswith("Rate limit exceeded")

    async def test_connect_redeem_limited_to_ten_per_minute(self, client):
        statuses = []
        for _ in range(11):
            resp = await client.post("/api/connect/redeem", json={"token": "bogus"})
            statuses.append(resp.status_code)

        assert statuses == [404] * 10 + [429]
        assert "Rate limit" in resp.json()["detail"]

    async def test_limits_are_per_client(self, client):
        for _ in range(10):
            await client.post(
                "/api/connect/redeem",
                json={"token": "bogus"},
                headers={"X-Forwarded-For": "203.0.113.1"},
            )

        blocked = await client.post(
            "/api/connect/redeem",
            json={"token": "bogus"},
            headers={"X-Forwarded-For": "203.0.113.1"},
        )
        other = await client.post(
            "/api/connect/redeem",
            json={"token": "bogus"},
            headers={"X-Forwarded-For": "203.0.113.2"},
        )

        assert blocked.status_code == 429
        assert other.status_code == 404

    async def test_health_not_limited(self, client):
        for _ in range(15):
            resp = await client.get("/health/live")
            assert resp.status_code == 200
