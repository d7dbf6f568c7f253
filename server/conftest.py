"""
Shared pytest fixtures for the server test suite.

Pacing delays are zeroed so draw, skip and bot sequences run instantly;
the inactivity tick keeps its real length so its task never fires
during a test unless a test shortens it.
"""

import pytest

import ai
import room
from services.stats_service import StatsService, set_stats_service


@pytest.fixture(autouse=True)
def no_pacing(monkeypatch):
    for key in ("forced_draw", "voluntary_draw", "forfeit", "skip"):
        monkeypatch.setitem(room.TURN_TIMING, key, 0)
    monkeypatch.setitem(ai.BOT_TIMING, "think", (0, 0))


@pytest.fixture(autouse=True)
def fresh_stats():
    service = StatsService()
    set_stats_service(service)
    yield service
    set_stats_service(StatsService())
