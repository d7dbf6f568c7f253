"""Services package for the Uno server."""

from .stats_service import (
    StatsService,
    get_stats_service,
    set_stats_service,
    close_stats_service,
    increment_stat,
    decrement_stat,
)

__all__ = [
    "StatsService",
    "get_stats_service",
    "set_stats_service",
    "close_stats_service",
    "increment_stat",
    "decrement_stat",
]
