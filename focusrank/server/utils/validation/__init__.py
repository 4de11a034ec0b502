"""Validation helper package."""

from .schema import (
    validate_metric,
    validate_period,
    validate_scope,
    validate_country,
    validate_limit,
    DEFAULT_METRIC,
    DEFAULT_PERIOD,
    DEFAULT_SCOPE,
    MIN_LEADERBOARD_LIMIT,
)

__all__ = [
    "validate_metric",
    "validate_period",
    "validate_scope",
    "validate_country",
    "validate_limit",
    "DEFAULT_METRIC",
    "DEFAULT_PERIOD",
    "DEFAULT_SCOPE",
    "MIN_LEADERBOARD_LIMIT",
]
