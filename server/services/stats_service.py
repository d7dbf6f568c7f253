"""
Analytics counters for the Uno server.

Counters are fire-and-forget: game code bumps them and never reads them
back. They are exposed read-only through the /metrics endpoint.

Tracked counters:
    lobbies_created, lobbies_online, cards_played, plus4s_dealt,
    bots_used, games_played
"""

import logging
from collections import Counter
from typing import Optional

logger = logging.getLogger(__name__)

STAT_NAMES = (
    "lobbies_created",
    "lobbies_online",
    "cards_played",
    "plus4s_dealt",
    "bots_used",
    "games_played",
)


class StatsService:
    """In-process counter store."""

    def __init__(self) -> None:
        self.counters: Counter[str] = Counter({name: 0 for name in STAT_NAMES})

    def increment(self, name: str, amount: int = 1) -> None:
        if name not in self.counters:
            logger.warning(f"Unknown stat '{name}' ignored")
            return
        self.counters[name] += amount

    def decrement(self, name: str, amount: int = 1) -> None:
        self.increment(name, -amount)

    def snapshot(self) -> dict[str, int]:
        """Copy of all counters, for metrics output."""
        return dict(self.counters)

    def reset(self) -> None:
        for name in self.counters:
            self.counters[name] = 0


_stats_service: Optional[StatsService] = None


def get_stats_service() -> StatsService:
    """Get the stats service singleton, creating it on first use."""
    global _stats_service
    if _stats_service is None:
        _stats_service = StatsService()
    return _stats_service


def set_stats_service(service: StatsService) -> None:
    """Replace the stats service instance (used by tests)."""
    global _stats_service
    _stats_service = service


def close_stats_service() -> None:
    """Drop the stats service instance."""
    global _stats_service
    _stats_service = None


def increment_stat(name: str, amount: int = 1) -> None:
    get_stats_service().increment(name, amount)


def decrement_stat(name: str, amount: int = 1) -> None:
    get_stats_service().decrement(name, amount)
