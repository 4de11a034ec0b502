"""Leaderboard REST API - Main application entry point.

This module provides the Flask application factory and initialization logic
for the leaderboard service. It handles:
- Database connection and repository initialization
- JWT bearer authentication of the caller
- Route registration and middleware setup
- Prometheus metrics configuration
"""

import logging
import sys
import time
from datetime import datetime
from typing import Callable, Optional

from flask import Flask, current_app, g, jsonify, request
from flask_cors import CORS
from jwt import InvalidTokenError
from prometheus_client import CollectorRegistry, Gauge
from prometheus_flask_exporter import PrometheusMetrics

from focusrank.database import DBController
from focusrank.repositories import (
    FriendshipRepository,
    SessionRepository,
    TaskRepository,
    UserRepository,
)
from focusrank.ranking.errors import StoreFailure
from focusrank.server.routes.health_routes import health_bp, init_health_routes
from focusrank.server.routes.leaderboard_routes import (
    init_leaderboard_routes,
    leaderboard_bp,
)
from focusrank.utils.config import settings
from focusrank.utils.identity import TokenService

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def initialize_database(app: Flask, db_controller: Optional[DBController] = None) -> bool:
    """Connect to MongoDB and build the read-only repositories.

    Args:
        app: Flask application instance to store dependencies.
        db_controller: Pre-built controller (tests); a new one is created otherwise.

    Returns:
        bool: True if initialization successful, False otherwise.
    """
    try:
        logger.info("Connecting to MongoDB...")
        db_controller = db_controller or DBController()

        if not db_controller.connect():
            logger.error("Failed to connect to MongoDB")
            return False

        # Store all dependencies in app.extensions for thread-safe access
        app.extensions["db_controller"] = db_controller
        app.extensions["user_repository"] = UserRepository(db_controller)
        app.extensions["friendship_repository"] = FriendshipRepository(db_controller)
        app.extensions["session_repository"] = SessionRepository(db_controller)
        app.extensions["task_repository"] = TaskRepository(db_controller)

        logger.info("Database initialized successfully db=%s", db_controller.db_name)
        return True

    except (ConnectionError, RuntimeError, OSError) as exc:
        logger.error("Database initialization failed: %s", str(exc), exc_info=True)
        return False


def initialize_routes(app: Flask, clock: Optional[Callable[[], datetime]] = None) -> None:
    """Initialize and register all route blueprints.

    Args:
        app: Flask application instance containing initialized dependencies.
        clock: Optional time source for period windows.
    """
    init_health_routes(
        app.extensions["db_controller"],
        dependency_metric_callback_param=app.extensions.get("dependency_metric_setter"),
    )
    app.extensions["leaderboard_controller"] = init_leaderboard_routes(
        app.extensions["user_repository"],
        app.extensions["friendship_repository"],
        app.extensions["session_repository"],
        app.extensions["task_repository"],
        clock=clock,
    )

    app.register_blueprint(health_bp)
    app.register_blueprint(leaderboard_bp)

    logger.info("All routes registered successfully")


def _resolve_caller(user_repository, claims):
    subject = claims.get("sub")
    if subject:
        user = user_repository.get_user_by_id(subject)
        if user:
            return user
    email = claims.get("email")
    if email:
        return user_repository.get_user_by_email(email)
    return None


def setup_middleware(app: Flask) -> None:
    """Setup Flask middleware and request hooks.

    Args:
        app: Flask application instance containing initialized dependencies.
    """

    @app.before_request
    def authenticate_request() -> Optional[tuple]:
        """Authenticate requests using JWT Bearer tokens."""
        # Always allow OPTIONS requests (CORS preflight)
        if request.method == "OPTIONS":
            return None

        exempt_paths = ("/api/health", "/metrics")
        if any(request.path.startswith(path) for path in exempt_paths):
            return None

        user_repository = current_app.extensions.get("user_repository")
        token_service = current_app.extensions.get("token_service")

        if not user_repository:
            logger.error("user_repository_not_initialized")
            return jsonify({"error": "Service not properly initialized"}), 503

        require_auth = current_app.config.get("REQUIRE_AUTHENTICATION", True)
        if not require_auth:
            # Development shortcut: trust an explicit caller id header
            user_id = request.headers.get("X-User-Id")
            if user_id:
                g.user = user_repository.get_user_by_id(user_id)
            return None

        if not token_service:
            logger.error("token_service_not_initialized")
            return jsonify({"error": "Authentication unavailable"}), 503

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.lower().startswith("bearer "):
            logger.warning("missing_bearer_token path=%s", request.path)
            return jsonify({"error": "Unauthorized"}), 401

        bearer_token = auth_header.split(" ", 1)[1].strip()

        try:
            claims = token_service.decode(bearer_token)
        except InvalidTokenError as exc:
            logger.warning("jwt_invalid_token path=%s error=%s", request.path, exc)
            return jsonify({"error": "Invalid or expired token"}), 401

        try:
            user = _resolve_caller(user_repository, claims)
        except (StoreFailure, ValueError) as exc:
            logger.error("authentication_failed error=%s", str(exc), exc_info=True)
            return jsonify({"error": "Failed to authenticate user"}), 500

        if not user:
            logger.warning("user_not_found_for_token sub=%s", claims.get("sub"))
            return jsonify({"error": "User not found. Please login first."}), 404

        g.user = user
        g.user_claims = claims
        logger.debug("user_authenticated user_id=%s", user.get("_id"))
        return None

    @app.before_request
    def before_request() -> None:
        """Log request start and track timing."""
        g.start_time = time.time()
        logger.info(
            "request_started method=%s path=%s remote_addr=%s",
            request.method,
            request.path,
            request.remote_addr,
        )

    @app.after_request
    def after_request(response):
        """Log request completion with duration."""
        if hasattr(g, "start_time"):
            duration = time.time() - g.start_time
            logger.info(
                "request_completed method=%s path=%s status=%s duration_ms=%.2f",
                request.method,
                request.path,
                response.status_code,
                duration * 1000,
            )
        return response


def setup_metrics(app: Flask, registry: Optional[CollectorRegistry] = None) -> None:
    """Setup Prometheus metrics and dependency gauges.

    Args:
        app: Flask application instance to store metric setter.
        registry: Collector registry; the process-wide default when omitted.
    """
    metrics = PrometheusMetrics(app, registry=registry)
    metrics.info("focusrank_app_info", "Leaderboard Service Info", version="1.0.0")

    dependency_gauge = Gauge(
        "focusrank_dependency_health",
        "Health status for external dependencies (1=up, 0=down)",
        ["dependency"],
        registry=metrics.registry,
    )

    def _set_dependency_metric(dependency: str, healthy: bool) -> None:
        dependency_gauge.labels(dependency=dependency).set(1 if healthy else 0)

    app.extensions["dependency_metric_setter"] = _set_dependency_metric
    logger.info("Prometheus metrics initialized")


def create_app(
    db_controller: Optional[DBController] = None,
    token_service: Optional[TokenService] = None,
    metrics_registry: Optional[CollectorRegistry] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> Flask:
    """Application factory pattern.

    Returns:
        Flask: Configured Flask application instance.
    """
    app = Flask(__name__)
    app.config["REQUIRE_AUTHENTICATION"] = settings.require_authentication
    app.config["LEADERBOARD_DEFAULT_LIMIT"] = settings.leaderboard_default_limit

    CORS(app, resources={
        r"/api/*": {
            "origins": settings.cors_origins,
            "methods": ["GET", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization"],
        }
    })
    logger.info("CORS enabled for API endpoints")

    if not initialize_database(app, db_controller):
        logger.critical("Cannot start app without database connection")
        sys.exit(1)

    app.extensions["token_service"] = token_service or TokenService()

    setup_middleware(app)
    setup_metrics(app, metrics_registry)
    initialize_routes(app, clock=clock)

    logger.info("Application created successfully")
    return app


if __name__ == "__main__":
    application = create_app()

    logger.info("=" * 60)
    logger.info("Starting Flask app on %s:%s", settings.host, settings.port)
    logger.info("=" * 60)

    application.run(debug=settings.debug, host=settings.host, port=settings.port)
