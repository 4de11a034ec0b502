"""Health check routes with dependency diagnostics."""

import logging
from typing import Callable, Optional, Tuple

from flask import Blueprint, jsonify

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api")

# Will be set by app factory
db_controller = None
dependency_metric_callback: Optional[Callable[[str, bool], None]] = None


def init_health_routes(
    db_ctrl,
    dependency_metric_callback_param: Optional[Callable[[str, bool], None]] = None,
):
    """Initialize health routes with injected dependencies."""

    global db_controller, dependency_metric_callback

    db_controller = db_ctrl
    dependency_metric_callback = dependency_metric_callback_param


def _record_metric(dependency: str, healthy: bool) -> None:
    if dependency_metric_callback:
        dependency_metric_callback(dependency, healthy)


def _check_database() -> Tuple[bool, str]:
    if not db_controller:
        return False, "db_controller_not_initialized"

    db = getattr(db_controller, "db", None)
    if db is None:
        return False, "disconnected"

    client = getattr(db_controller, "client", None)
    if client is None:
        return True, "connected_no_client"

    try:
        client.admin.command("ping")
        return True, "connected"
    except Exception as exc:  # pragma: no cover - relies on Mongo client
        logger.warning("database_ping_failed error=%s", str(exc))
        return False, "ping_failed"


@health_bp.route("/health")
def health():
    """Health check endpoint."""
    logger.debug("health_check_called")

    healthy, details = _check_database()
    _record_metric("database", healthy)

    response = {
        "status": "ok" if healthy else "degraded",
        "dependencies": {"database": {"healthy": healthy, "details": details}},
    }
    return jsonify(response), 200 if healthy else 503
