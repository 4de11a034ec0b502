"""Top-K ranking and leaderboard entry rendering."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

from .metrics import MetricRow, MetricStrategy

DEFAULT_LIMIT = 50


def _display_username(user: Mapping[str, Any]) -> str:
    username = user.get("username")
    if username:
        return username
    email = user.get("email") or ""
    local_part = email.split("@")[0]
    return local_part or "user"


def build_entry(
    strategy: MetricStrategy, rank: int, row: MetricRow
) -> Dict[str, Any]:
    """Render one ranked row with display fields joined from its profile."""
    user = row.profile or {}
    profile = user.get("profile") or {}
    entry: Dict[str, Any] = {
        "rank": rank,
        "userId": str(row.user_id),
        "name": user.get("name") or "Anonymous",
        "username": _display_username(user),
        "avatar": user.get("avatar_url"),
        "level": profile.get("level") or 1,
        "country": profile.get("country") or "",
        "metric": strategy.label,
        "value": strategy.value(row),
        "displayValue": strategy.format_value(row),
    }
    entry.update(strategy.entry_fields(row))
    return entry


def rank_rows(
    strategy: MetricStrategy,
    rows: Sequence[MetricRow],
    limit: Optional[int] = DEFAULT_LIMIT,
) -> List[Dict[str, Any]]:
    """Sort rows by the metric's total order and assign dense 1-based ranks.

    Rows without a joined profile (owner no longer exists) are dropped before
    ranks are assigned so the sequence has no gaps.
    """
    ranked = strategy.sort_rows([row for row in rows if row.profile is not None])
    if limit is not None:
        ranked = ranked[:limit]
    return [build_entry(strategy, index + 1, row) for index, row in enumerate(ranked)]
