"""
Tests for the health endpoints.

Run with: pytest test_health.py -v
"""

import json

import pytest

from routers import health
from scheduler import ManualScheduler
from session import SessionManager


@pytest.fixture(autouse=True)
def clear_dependencies():
    yield
    health.set_health_dependencies(None)


class TestHealth:

    @pytest.mark.asyncio
    async def test_health_always_ok(self):
        body = await health.health_check()
        assert body["status"] == "ok"
        assert "timestamp" in body

    @pytest.mark.asyncio
    async def test_ready_without_manager(self):
        response = await health.readiness_check()
        assert response.status_code == 503
        assert json.loads(response.body)["checks"]["sessions"]["status"] == "not_configured"

    @pytest.mark.asyncio
    async def test_ready_with_capacity(self):
        sm = SessionManager(max_sessions=2, scheduler_factory=ManualScheduler)
        session = sm.create_session("Alice")
        session.game.start_game()
        health.set_health_dependencies(session_manager=sm)

        response = await health.readiness_check()
        body = json.loads(response.body)
        assert response.status_code == 200
        assert body["checks"]["sessions"]["active"] == 1
        assert body["checks"]["sessions"]["games_in_progress"] == 1

    @pytest.mark.asyncio
    async def test_not_ready_when_full(self):
        sm = SessionManager(max_sessions=1, scheduler_factory=ManualScheduler)
        sm.create_session("Alice")
        health.set_health_dependencies(session_manager=sm)

        response = await health.readiness_check()
        assert response.status_code == 503
        assert json.loads(response.body)["checks"]["sessions"]["status"] == "full"
