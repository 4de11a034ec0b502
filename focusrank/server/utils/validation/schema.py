"""Reusable request validation helpers for leaderboard queries."""

import logging
from typing import Iterable, Optional

from focusrank.ranking.errors import InvalidLeaderboardRequest
from focusrank.ranking.metrics import METRICS
from focusrank.ranking.periods import ALL_TIME, PERIODS
from focusrank.ranking.scope import GLOBAL, SCOPES

logger = logging.getLogger(__name__)

DEFAULT_METRIC = "xp"
DEFAULT_PERIOD = ALL_TIME
DEFAULT_SCOPE = GLOBAL

MIN_LEADERBOARD_LIMIT = 1
MAX_COUNTRY_LENGTH = 64


def _validate_choice(field: str, value: Optional[str], default: str, allowed: Iterable[str]) -> str:
    allowed = tuple(allowed)
    if value is None or value == "":
        return default
    if value not in allowed:
        logger.warning("invalid_%s_value value=%s", field, value)
        raise InvalidLeaderboardRequest(field, value, allowed)
    return value


def validate_metric(metric: Optional[str], allowed: Iterable[str] = METRICS) -> str:
    """Return a known metric key; blank means the default (``xp``)."""
    return _validate_choice("metric", metric, DEFAULT_METRIC, allowed)


def validate_period(period: Optional[str]) -> str:
    return _validate_choice("period", period, DEFAULT_PERIOD, PERIODS)


def validate_scope(scope: Optional[str]) -> str:
    return _validate_choice("scope", scope, DEFAULT_SCOPE, SCOPES)


def validate_country(country: Optional[str]) -> Optional[str]:
    """Strip the country override; blank means "use the caller's country"."""
    if country is None:
        return None
    country = country.strip()
    if len(country) > MAX_COUNTRY_LENGTH:
        logger.warning("country_too_long length=%d", len(country))
        raise InvalidLeaderboardRequest("country", country)
    return country or None


def validate_limit(limit, default: int) -> int:
    """Parse ``limit`` as a positive integer; blank means ``default``."""

    if limit is None or limit == "":
        return default
    try:
        value = int(limit)
    except (TypeError, ValueError) as exc:
        logger.warning("limit_validation_failed value=%s", limit)
        raise InvalidLeaderboardRequest("limit", limit) from exc
    if value < MIN_LEADERBOARD_LIMIT:
        logger.warning("limit_out_of_range value=%s", limit)
        raise InvalidLeaderboardRequest("limit", limit)
    return value
