"""Tests for health check endpoints."""

from unittest.mock import AsyncMock, patch

from medreminder import __version__


class TestHealthEndpoint:
    """Tests for /health endpoint."""

    async def test_healthy_with_real_database(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "connected"

    async def test_reports_websocket_block(self, client, container):
        class Idle:
            is_open = True

            def send(self, message: str) -> None:
                pass

        container.registry.register("uid_a", Idle())
        container.registry.register("uid_a", Idle())

        data = (await client.get("/health")).json()

        assert data["websocket"] == {"active": True, "total_connections": 2, "users": 1}

    async def test_degraded_when_db_disconnected(self, client):
        with patch(
            "medreminder.routers.health.check_database_connection",
            new_callable=AsyncMock,
            return_value=False,
        ):
            response = await client.get("/health")

        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "degraded"
        assert data["database"] == "disconnected"
        assert data["websocket"]["active"] is True


class TestProbes:
    async def test_liveness(self, client):
        response = await client.get("/health/live")

        assert response.status_code == 200
        assert response.json() == {"status": "alive"}

    async def test_readiness(self, client):
        response = await client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    async def test_not_ready_when_db_disconnected(self, client):
        with patch(
            "medreminder.routers.health.check_database_connection",
            new_callable=AsyncMock,
            return_value=False,
        ):
            response = await client.get("/health/ready")

        assert response.status_code == 503
        assert response.json() == {"status": "not_ready", "database": "disconnected"}


class TestRootEndpoint:
    async def test_returns_api_info(self, client):
        response = await client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Medication Reminder API"
        assert data["version"] == __version__
        assert data["docs"] == "/docs"
