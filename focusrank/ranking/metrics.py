"""Metric strategies: raw-value queries, total ordering and display.

Every metric orders users by a tuple of integer ``values`` (descending), then
by user id (ascending) so that the order is total and ranks never tie. The
ranker's sort and the locator's counting filter are both derived from
``MetricStrategy.order_fields`` and ``compare_rows`` so they stay in step.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from functools import cmp_to_key
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .errors import InvalidLeaderboardRequest
from .scope import ScopeFilter

XP_PER_LEVEL = 100


def total_xp(level: int, xp: int) -> int:
    """Canonical comparable XP: ``(level - 1) * 100 + xp``."""
    return (max(level, 1) - 1) * XP_PER_LEVEL + xp


@dataclass
class MetricRow:
    """One user's raw metric values plus whatever the display needs."""

    user_id: Any
    values: Tuple[int, ...]
    extra: Dict[str, Any] = field(default_factory=dict)
    profile: Optional[Dict[str, Any]] = None


def compare_rows(a: MetricRow, b: MetricRow) -> int:
    """Negative when ``a`` ranks above ``b``, positive when below."""
    if a.values != b.values:
        return -1 if a.values > b.values else 1
    if a.user_id == b.user_id:
        return 0
    return -1 if a.user_id < b.user_id else 1


def outrank_filter(
    fields: Sequence[str], values: Sequence[int], id_field: str, user_id: Any
) -> Dict[str, Any]:
    """Mongo filter matching documents that rank strictly above a row.

    For fields ``(p, t)`` this is ``p > v0``, or ``p == v0 and t > v1``, or
    both equal and a smaller id; the same lexicographic rule as
    ``compare_rows``.
    """
    clauses: List[Dict[str, Any]] = []
    for index, name in enumerate(fields):
        clause: Dict[str, Any] = {fields[i]: values[i] for i in range(index)}
        clause[name] = {"$gt": values[index]}
        clauses.append(clause)
    tie: Dict[str, Any] = dict(zip(fields, values))
    tie[id_field] = {"$lt": user_id}
    clauses.append(tie)
    return {"$or": clauses}


def _profile_int(user: Mapping[str, Any], dotted: str, default: int) -> int:
    value: Any = user
    for part in dotted.split("."):
        if not isinstance(value, Mapping):
            return default
        value = value.get(part)
    return int(value) if value is not None else default


class MetricStrategy:
    """Base strategy; subclasses provide queries and display fields."""

    key = ""
    label = ""
    description = ""
    order_fields: Tuple[str, ...] = ()
    uses_period = False

    def compare_descending(self, a: MetricRow, b: MetricRow) -> int:
        return compare_rows(a, b)

    def outranks(self, a: MetricRow, b: MetricRow) -> bool:
        return self.compare_descending(a, b) < 0

    def sort_rows(self, rows: Sequence[MetricRow]) -> List[MetricRow]:
        return sorted(rows, key=cmp_to_key(self.compare_descending))

    def aggregate_top(
        self, scope: ScopeFilter, since: Optional[datetime], limit: int
    ) -> List[MetricRow]:
        raise NotImplementedError

    def aggregate_one(self, user_id: Any, since: Optional[datetime]) -> Optional[MetricRow]:
        raise NotImplementedError

    def count_outranking(
        self, scope: ScopeFilter, since: Optional[datetime], row: MetricRow
    ) -> int:
        raise NotImplementedError

    def value(self, row: MetricRow) -> int:
        return row.values[0]

    def entry_fields(self, row: MetricRow) -> Dict[str, Any]:
        return {}

    def format_value(self, row: MetricRow) -> str:
        return str(self.value(row))


class ProfileMetric(MetricStrategy):
    """Metric read straight from fields on the user document.

    Missing or null profile fields rank as their defaults. The store computes
    the same defaults with ``$ifNull`` into ``rank_<n>`` keys, and both the
    top-K sort and the outranking count run on those keys.
    """

    defaults: Tuple[int, ...] = ()

    def __init__(self, user_repository) -> None:
        self.user_repository = user_repository

    @property
    def rank_keys(self) -> Tuple[str, ...]:
        return tuple(f"rank_{index}" for index in range(len(self.order_fields)))

    def rank_fields(self) -> Dict[str, Any]:
        """``$addFields`` spec computing each order field with its default."""
        return {
            key: {"$ifNull": [f"${name}", default]}
            for key, name, default in zip(self.rank_keys, self.order_fields, self.defaults)
        }

    def row_from_user(self, user: Dict[str, Any]) -> MetricRow:
        values = tuple(
            _profile_int(user, name, default)
            for name, default in zip(self.order_fields, self.defaults)
        )
        return MetricRow(user_id=user["_id"], values=values, profile=user)

    def aggregate_top(self, scope, since, limit):
        sort = [(key, -1) for key in self.rank_keys] + [("_id", 1)]
        users = self.user_repository.aggregate_ranked(
            scope.user_filter(), self.rank_fields(), sort, limit
        )
        return [self.row_from_user(user) for user in users]

    def aggregate_one(self, user_id, since):
        user = self.user_repository.get_user_by_id(user_id)
        return self.row_from_user(user) if user else None

    def count_outranking(self, scope, since, row):
        above = outrank_filter(self.rank_keys, row.values, "_id", row.user_id)
        return self.user_repository.count_ranked_above(
            scope.user_filter(), self.rank_fields(), above
        )


class XpMetric(ProfileMetric):
    key = "xp"
    label = "XP"
    description = "Experience Points"
    order_fields = ("profile.level", "profile.xp")
    defaults = (1, 0)

    def value(self, row):
        return total_xp(*row.values)

    def entry_fields(self, row):
        return {"xp": row.values[1], "totalXP": self.value(row)}

    def format_value(self, row):
        return f"{self.value(row):,} XP"


class StreakMetric(ProfileMetric):
    key = "streak"
    label = "Streak"
    description = "Best Streak"
    order_fields = ("profile.best_streak", "profile.streak_days")
    defaults = (0, 0)

    def entry_fields(self, row):
        return {"currentStreak": row.values[1], "bestStreak": row.values[0]}

    def format_value(self, row):
        return f"{row.values[0]} days"


class EventMetric(MetricStrategy):
    """Metric aggregated per user from an event collection.

    Eligibility is applied inside the pipeline: owner ids are pushed into the
    event ``$match`` where the scope has them, and every group is joined to
    its owner in ``users`` under the scope's user filter. Groups whose owner
    is missing or out of scope drop out before ``$limit`` or ``$count``.
    """

    uses_period = True
    order_fields = ("total",)
    empty_extra: Dict[str, Any] = {}

    def __init__(self, event_repository) -> None:
        self.event_repository = event_repository

    def row_from_group(
        self, group: Dict[str, Any], profile: Optional[Dict[str, Any]] = None
    ) -> MetricRow:
        extra = {k: v for k, v in group.items() if k not in ("_id", "total", "owner")}
        return MetricRow(
            user_id=group["_id"],
            values=(int(group.get("total") or 0),),
            extra=extra,
            profile=profile,
        )

    def _match(self, scope: ScopeFilter, since: Optional[datetime]) -> Dict[str, Any]:
        owner_field = self.event_repository.owner_field
        return self.event_repository.build_match(since, scope.event_filter(owner_field))

    def aggregate_top(self, scope, since, limit):
        groups = self.event_repository.aggregate_ranked_owners(
            self._match(scope, since), scope.user_filter(), limit
        )
        return [self.row_from_group(group, group.get("owner")) for group in groups]

    def aggregate_one(self, user_id, since):
        group = self.event_repository.totals_for_user(user_id, since)
        if group is None:
            group = {"_id": user_id, "total": 0, **self.empty_extra}
        return self.row_from_group(group)

    def count_outranking(self, scope, since, row):
        above = outrank_filter(self.order_fields, row.values, "_id", row.user_id)
        return self.event_repository.count_outranking_owners(
            self._match(scope, since), above, scope.user_filter()
        )

class FocusTimeMetric(EventMetric):
    key = "focus_time"
    label = "Focus Time"
    description = "Focus Time"
    empty_extra = {"count": 0}

    def entry_fields(self, row):
        return {
            "totalFocusTime": row.values[0],
            "sessionCount": int(row.extra.get("count", 0)),
        }

    def format_value(self, row):
        minutes = row.values[0] // 60
        return f"{minutes // 60}h {minutes % 60}m"


class TasksCompletedMetric(EventMetric):
    key = "tasks_completed"
    label = "Tasks Completed"
    description = "Tasks Completed"

    def entry_fields(self, row):
        return {"completedTasks": row.values[0]}

    def format_value(self, row):
        return f"{row.values[0]} tasks"


METRICS = ("xp", "focus_time", "streak", "tasks_completed")


def build_metric_registry(
    user_repository,
    session_repository,
    task_repository,
) -> Dict[str, MetricStrategy]:
    """Instantiate one strategy per metric, keyed by request value."""
    strategies: List[MetricStrategy] = [
        XpMetric(user_repository),
        FocusTimeMetric(session_repository),
        StreakMetric(user_repository),
        TasksCompletedMetric(task_repository),
    ]
    return {strategy.key: strategy for strategy in strategies}


def get_metric(registry: Mapping[str, MetricStrategy], key: Any) -> MetricStrategy:
    try:
        return registry[key]
    except (KeyError, TypeError):
        raise InvalidLeaderboardRequest("metric", key, registry.keys()) from None
