"""Leaderboard controller: fans out the ranking queries and assembles the payload."""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from focusrank.ranking.errors import InvalidLeaderboardRequest, StoreFailure
from focusrank.ranking.locator import RankLocator
from focusrank.ranking.metrics import MetricStrategy, build_metric_registry, get_metric
from focusrank.ranking.periods import PERIOD_LABELS, PERIODS, period_start, utc_now
from focusrank.ranking.ranker import DEFAULT_LIMIT, rank_rows
from focusrank.ranking.scope import SCOPE_LABELS, ScopeFilter, ScopeResolver
from focusrank.repositories.base_repository import to_object_id

logger = logging.getLogger(__name__)


class LeaderboardController:
    """Controller for leaderboard reads.

    Per request the top-K aggregation and the country facet run concurrently
    on a short-lived thread pool. The caller's rank is only located when the
    caller is eligible but not on the page. Nothing is shared between requests.
    """

    def __init__(
        self,
        user_repository,
        friendship_repository,
        session_repository,
        task_repository,
        max_workers: int = 4,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize with repository dependencies."""
        self.user_repository = user_repository
        self.metrics = build_metric_registry(
            user_repository, session_repository, task_repository
        )
        self.scope_resolver = ScopeResolver(user_repository, friendship_repository)
        self.rank_locator = RankLocator(user_repository)
        self.max_workers = max(max_workers, 1)
        self.clock = clock or utc_now

    def get_leaderboard(
        self,
        caller_id: Any,
        metric: str = "xp",
        period: str = "all_time",
        scope: str = "global",
        country: Optional[str] = None,
        limit: int = DEFAULT_LIMIT,
    ) -> Dict[str, Any]:
        """Return the leaderboard page, the caller's entry and the country facet.

        Raises:
            InvalidLeaderboardRequest: unknown metric, period or scope
            StoreFailure: the top-K or country query failed
        """
        strategy = get_metric(self.metrics, metric)
        if period not in PERIODS:
            raise InvalidLeaderboardRequest("period", period, PERIODS)

        caller = to_object_id(caller_id)
        since = period_start(period, self.clock()) if strategy.uses_period else None
        scope_filter = self.scope_resolver.resolve(caller, scope, country)

        logger.info(
            "fetching_leaderboard caller=%s metric=%s period=%s scope=%r limit=%d",
            caller_id,
            metric,
            period,
            scope_filter,
            limit,
        )

        leaderboard: List[Dict[str, Any]] = []
        current_user: Optional[Dict[str, Any]] = None

        with ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="leaderboard"
        ) as pool:
            countries_future = pool.submit(self.user_repository.get_available_countries)

            # An unresolvable scope has nobody to rank, not everybody
            if not scope_filter.is_empty:
                top_future = pool.submit(strategy.aggregate_top, scope_filter, since, limit)
                leaderboard = rank_rows(strategy, top_future.result(), limit)
                current_user = self._current_user_entry(
                    leaderboard, caller, strategy, scope_filter, since
                )

            available_countries = countries_future.result()

        logger.info(
            "leaderboard_fetched metric=%s scope=%s count=%d caller_rank=%s",
            metric,
            scope,
            len(leaderboard),
            current_user["rank"] if current_user else None,
        )

        return {
            "leaderboard": leaderboard,
            "currentUser": current_user,
            "metric": metric,
            "period": period,
            "scope": scope,
            "country": scope_filter.country,
            "limit": limit,
            "totalUsers": len(leaderboard),
            "availableCountries": available_countries,
        }

    def _current_user_entry(
        self,
        leaderboard: List[Dict[str, Any]],
        caller: Any,
        strategy: MetricStrategy,
        scope_filter: ScopeFilter,
        since: Optional[datetime],
    ) -> Optional[Dict[str, Any]]:
        caller_key = str(caller)
        for entry in leaderboard:
            if entry["userId"] == caller_key:
                return entry

        # The page is still useful when only the caller's rank is unavailable
        try:
            return self.rank_locator.locate(strategy, caller, scope_filter, since)
        except StoreFailure as exc:
            logger.warning(
                "rank_locator_failed caller=%s error=%s", caller_key, exc, exc_info=True
            )
            return None

    def get_catalogue(self) -> Dict[str, Any]:
        """List the metrics, periods and scopes clients can request."""
        return {
            "metrics": [
                {
                    "id": strategy.key,
                    "label": strategy.description,
                    "unit": strategy.label,
                    "usesPeriod": strategy.uses_period,
                }
                for strategy in self.metrics.values()
            ],
            "periods": [{"id": key, "label": PERIOD_LABELS[key]} for key in PERIODS],
            "scopes": [
                {"id": key, "label": label} for key, label in SCOPE_LABELS.items()
            ],
        }
