"""Locates a single user's exact rank without materializing the ranking."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from .metrics import MetricStrategy
from .ranker import build_entry
from .scope import ScopeFilter

logger = logging.getLogger(__name__)


class RankLocator:
    """Counts eligible users that strictly outrank a given user.

    ``rank = count + 1`` matches the index the user would get in a full sort
    of the eligible set, because the count uses the metric's own ordering.
    """

    def __init__(self, user_repository) -> None:
        self.user_repository = user_repository

    def locate(
        self,
        strategy: MetricStrategy,
        user_id: Any,
        scope: ScopeFilter,
        since: Optional[datetime] = None,
    ) -> Optional[Dict[str, Any]]:
        """Return the user's leaderboard entry, or ``None`` if not eligible."""
        user = self.user_repository.get_user_by_id(user_id)
        if not scope.admits(user):
            logger.debug("rank_locator_skipped user_id=%s scope=%r", user_id, scope)
            return None

        row = strategy.aggregate_one(user["_id"], since)
        if row is None:
            return None
        row.profile = user

        better = strategy.count_outranking(scope, since, row)
        logger.info(
            "rank_located metric=%s user_id=%s rank=%d",
            strategy.key,
            user_id,
            better + 1,
        )
        return build_entry(strategy, better + 1, row)
