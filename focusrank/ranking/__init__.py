"""Leaderboard ranking engine."""

from .errors import InvalidLeaderboardRequest, LeaderboardError, StoreFailure
from .locator import RankLocator
from .metrics import (
    METRICS,
    MetricRow,
    MetricStrategy,
    build_metric_registry,
    get_metric,
    total_xp,
)
from .periods import PERIODS, period_start
from .ranker import DEFAULT_LIMIT, build_entry, rank_rows
from .scope import SCOPES, ScopeFilter, ScopeResolver

__all__ = [
    "DEFAULT_LIMIT",
    "InvalidLeaderboardRequest",
    "LeaderboardError",
    "METRICS",
    "MetricRow",
    "MetricStrategy",
    "PERIODS",
    "RankLocator",
    "SCOPES",
    "ScopeFilter",
    "ScopeResolver",
    "StoreFailure",
    "build_entry",
    "build_metric_registry",
    "get_metric",
    "period_start",
    "rank_rows",
    "total_xp",
]
