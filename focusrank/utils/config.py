"""Runtime configuration helpers for the leaderboard service."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Mapping, Optional

import boto3


def _flag(value: str) -> bool:
    return value.lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class Settings:
    """Immutable application configuration loaded from the environment."""

    debug: bool
    host: str
    port: int
    aws_region: str
    mongodb_host: str
    mongodb_port: int
    mongodb_db_name: str
    mongodb_username: Optional[str]
    mongodb_password: Optional[str]
    mongodb_ssm_prefix: str
    jwt_exp_days: int
    jwt_ssm_parameter_name: str
    require_authentication: bool
    cors_origins: str
    # Leaderboard tuning
    leaderboard_default_limit: int
    leaderboard_max_workers: int

    @staticmethod
    def from_env(env: Mapping[str, str] | None = None) -> "Settings":
        env = env or os.environ
        return Settings(

            # toggle Flask debugger (disabled in prod)
            debug=_flag(env.get("FLASK_DEBUG", "false")),
            host=env.get("FLASK_HOST", "0.0.0.0"),  # nosec B104 - Required for containerized deployment
            port=int(env.get("FLASK_PORT", "5000")),
            aws_region=env.get("AWS_REGION", "eu-north-1"),

            # mongodb connection
            mongodb_host=env.get("MONGODB_HOST", "mongodb.mongodb.svc.cluster.local"),
            mongodb_port=int(env.get("MONGODB_PORT", "27017")),
            mongodb_db_name=env.get("MONGODB_DB_NAME", "focusrank"),
            mongodb_username=env.get("MONGODB_USERNAME"),
            mongodb_password=env.get("MONGODB_PASSWORD"),
            mongodb_ssm_prefix=env.get("MONGODB_SSM_PREFIX", "/focusrank/mongodb"),

            # auth parameters
            jwt_exp_days=int(env.get("JWT_EXP_DAYS", "7")),
            jwt_ssm_parameter_name=env.get("JWT_SSM_PARAMETER", "/focusrank/jwt-secret"),
            # variable to disable JWT auth in development
            require_authentication=_flag(env.get("REQUIRE_AUTHENTICATION", "true")),
            cors_origins=env.get("CORS_ORIGINS", "*"),

            # leaderboard configuration
            leaderboard_default_limit=int(env.get("LEADERBOARD_DEFAULT_LIMIT", "50")),
            leaderboard_max_workers=int(env.get("LEADERBOARD_MAX_WORKERS", "4")),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached Settings loaded from environment variables."""

    return Settings.from_env()


settings = get_settings()


def get_jwt_secret(ssm_client=None) -> str:
    """Fetch JWT secret from environment variable or AWS SSM Parameter Store.

    Priority:
    1. JWT_SECRET env var (docker-compose)
    2. SSM Parameter Store (EKS with IRSA)
    """
    logger = logging.getLogger(__name__)

    jwt_secret = os.environ.get("JWT_SECRET")
    if jwt_secret:
        logger.debug("using_jwt_secret_from_environment")
        return jwt_secret

    logger.info(
        "fetching_jwt_secret_from_ssm parameter=%s", settings.jwt_ssm_parameter_name
    )
    try:
        client = ssm_client or boto3.client("ssm", region_name=settings.aws_region)
        resp = client.get_parameter(
            Name=settings.jwt_ssm_parameter_name, WithDecryption=True
        )
        logger.info("jwt_secret_fetched_from_ssm")
        return resp["Parameter"]["Value"]
    except Exception as exc:  # pragma: no cover - relies on AWS infra
        logger.error("jwt_secret_fetch_failed error=%s", str(exc))
        raise ValueError(f"Failed to retrieve JWT secret: {str(exc)}") from exc
