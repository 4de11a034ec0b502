"""Leaderboard routes."""

import logging
from typing import Optional

from flask import Blueprint, current_app, g, jsonify, request

from focusrank.ranking.errors import InvalidLeaderboardRequest, StoreFailure
from focusrank.server.controllers.leaderboard_handler import LeaderboardController
from focusrank.server.utils.validation import (
    validate_country,
    validate_limit,
    validate_metric,
    validate_period,
    validate_scope,
)
from focusrank.utils.config import settings

logger = logging.getLogger(__name__)

leaderboard_bp = Blueprint("leaderboard", __name__, url_prefix="/api/leaderboard")

# Will be set by the app factory during initialization
leaderboard_controller: Optional[LeaderboardController] = None


def init_leaderboard_routes(
    user_repository,
    friendship_repository,
    session_repository,
    task_repository,
    clock=None,
) -> LeaderboardController:
    """Initialize leaderboard routes with their controller."""
    global leaderboard_controller
    leaderboard_controller = LeaderboardController(
        user_repository,
        friendship_repository,
        session_repository,
        task_repository,
        max_workers=settings.leaderboard_max_workers,
        clock=clock,
    )
    return leaderboard_controller


@leaderboard_bp.route("", methods=["GET"])
def get_leaderboard():
    """Rank users by metric within a scope and period.

    Query params: metric, period, scope, country, limit.
    """
    if leaderboard_controller is None:
        return jsonify({"error": "Service not initialized"}), 503

    authenticated_user = getattr(g, "user", None)
    if not authenticated_user:
        return jsonify({"error": "Authentication required"}), 401

    try:
        metric = validate_metric(
            request.args.get("metric"), leaderboard_controller.metrics.keys()
        )
        period = validate_period(request.args.get("period"))
        scope = validate_scope(request.args.get("scope"))
        country = validate_country(request.args.get("country"))
        limit = validate_limit(
            request.args.get("limit"),
            default=current_app.config.get(
                "LEADERBOARD_DEFAULT_LIMIT", settings.leaderboard_default_limit
            ),
        )

        data = leaderboard_controller.get_leaderboard(
            caller_id=authenticated_user["_id"],
            metric=metric,
            period=period,
            scope=scope,
            country=country,
            limit=limit,
        )
        return jsonify({"success": True, "data": data}), 200
    except InvalidLeaderboardRequest as exc:
        return (
            jsonify({"error": str(exc), "field": exc.field, "value": exc.value}),
            400,
        )
    except StoreFailure as exc:
        logger.error("leaderboard_fetch_failed error=%s", str(exc), exc_info=True)
        return jsonify({"error": "Internal server error", "details": str(exc)}), 500


@leaderboard_bp.route("/metrics", methods=["GET"])
def get_metric_catalogue():
    """List the metrics, periods and scopes accepted by the leaderboard."""
    if leaderboard_controller is None:
        return jsonify({"error": "Service not initialized"}), 503

    return jsonify(leaderboard_controller.get_catalogue()), 200
