"""
Health check endpoints for deployment.

Provides:
- /health - Basic liveness check (is the app running?)
- /ready - Readiness check (can the app accept another game?)
"""

import json
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Response

from game import GamePhase

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

# Service references (set during app initialization)
_session_manager = None


def set_health_dependencies(session_manager=None):
    """Set dependencies for health checks."""
    global _session_manager
    _session_manager = session_manager


@router.get("/health")
async def health_check():
    """
    Basic liveness check - is the app running?

    This endpoint should always return 200 if the process is alive.
    """
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/ready")
async def readiness_check():
    """
    Readiness check - can the app host another session?

    Returns 503 when the session manager is missing or at capacity.
    """
    checks = {}
    ready = True

    if _session_manager is not None:
        sessions = _session_manager.sessions
        active = len(sessions)
        capacity = _session_manager.max_sessions
        in_progress = sum(
            1 for s in sessions.values()
            if s.game.phase in (GamePhase.DEALING, GamePhase.AWAITING_MOVE)
        )
        checks["sessions"] = {
            "status": "ok" if active < capacity else "full",
            "active": active,
            "capacity": capacity,
            "games_in_progress": in_progress,
        }
        if active >= capacity:
            logger.warning(f"Readiness check: session capacity reached ({active}/{capacity})")
            ready = False
    else:
        checks["sessions"] = {"status": "not_configured"}
        ready = False

    status_code = 200 if ready else 503
    return Response(
        content=json.dumps({
            "status": "ok" if ready else "unavailable",
            "checks": checks,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }),
        status_code=status_code,
        media_type="application/json",
    )
