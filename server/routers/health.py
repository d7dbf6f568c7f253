"""
Health check endpoints for deployment.

Provides:
- /health - Basic liveness check (is the app running?)
- /ready - Readiness check (is the room registry wired up?)
- /metrics - Room, connection and analytics counters
"""

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Response

from services.stats_service import get_stats_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

# Service references (set during app initialization)
_room_manager = None
_connections: Optional[dict] = None


def set_health_dependencies(room_manager=None, connections: Optional[dict] = None):
    """Set dependencies for health checks."""
    global _room_manager, _connections
    _room_manager = room_manager
    _connections = connections


@router.get("/health")
async def health_check():
    """
    Basic liveness check.

    Always returns 200 while the process is alive.
    """
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/ready")
async def readiness_check():
    """
    Readiness check.

    Returns 503 until the server has registered its room manager.
    """
    ready = _room_manager is not None
    checks = {"rooms": {"status": "ok" if ready else "not_configured"}}

    return Response(
        content=json.dumps({
            "status": "ok" if ready else "degraded",
            "checks": checks,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }),
        status_code=200 if ready else 503,
        media_type="application/json",
    )


@router.get("/metrics")
async def metrics():
    """Expose room, connection and gameplay counters for dashboards."""
    metrics_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    if _room_manager is not None:
        rooms = list(_room_manager.rooms.values())
        metrics_data.update({
            "active_rooms": len(rooms),
            "total_players": sum(len(r.players) for r in rooms),
            "bots_seated": sum(1 for r in rooms for p in r.players if p.is_bot),
            "games_in_progress": sum(1 for r in rooms if r.started and r.winner is None),
        })

    if _connections is not None:
        metrics_data["connected_websockets"] = len(_connections)

    metrics_data["stats"] = get_stats_service().snapshot()
    return metrics_data
