"""MongoDB connection for the leaderboard readers."""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional, Tuple

import boto3
import pymongo
from pymongo.errors import PyMongoError

from focusrank.utils.config import settings

logger = logging.getLogger(__name__)

# The service only reads, so every query may be served by a secondary
READ_PREFERENCE = "secondaryPreferred"
TIMEOUT_MS = 5000


def _credentials_from_ssm(prefix: str) -> Tuple[Optional[str], Optional[str]]:
    """Read ``<prefix>/root-username`` and ``<prefix>/root-password`` from SSM.

    Returns ``(None, None)`` when SSM is unreachable, which is the normal case
    outside AWS where credentials come from the environment.
    """

    prefix = prefix.rstrip("/")
    try:
        ssm = boto3.client("ssm", region_name=settings.aws_region)
        values = [
            ssm.get_parameter(Name=f"{prefix}/{name}", WithDecryption=True)["Parameter"]["Value"]
            for name in ("root-username", "root-password")
        ]
    except Exception as exc:  # pragma: no cover - relies on AWS infra
        logger.debug("mongodb_ssm_credentials_unavailable prefix=%s error=%s", prefix, exc)
        return None, None
    logger.info("mongodb_credentials_loaded source=ssm")
    return values[0], values[1]


class DBController:
    """Owns the PyMongo client and the handle to the leaderboard database."""

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        db_name: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ) -> None:
        self.host = host or settings.mongodb_host
        self.port = port or settings.mongodb_port
        self.db_name = db_name or settings.mongodb_db_name
        self.username = username or settings.mongodb_username
        self.password = password or settings.mongodb_password
        if not (self.username and self.password):
            ssm_username, ssm_password = _credentials_from_ssm(settings.mongodb_ssm_prefix)
            self.username = self.username or ssm_username
            self.password = self.password or ssm_password

        self.client: Optional[pymongo.MongoClient] = None
        self.db = None

    def client_options(self) -> Dict[str, Any]:
        """Keyword arguments for ``pymongo.MongoClient``."""
        options: Dict[str, Any] = {
            "host": self.host,
            "port": self.port,
            "serverSelectionTimeoutMS": TIMEOUT_MS,
            "connectTimeoutMS": TIMEOUT_MS,
            "socketTimeoutMS": TIMEOUT_MS,
            "retryReads": True,
            "readPreference": READ_PREFERENCE,
        }
        if self.username and self.password:
            options.update(
                username=self.username, password=self.password, authSource="admin"
            )
        return options

    def connect(self, max_retries: int = 3, retry_delay: float = 2) -> bool:
        """Open the client and ping the server, retrying ``max_retries`` times."""
        for attempt in range(1, max_retries + 1):
            client = pymongo.MongoClient(**self.client_options())
            try:
                client.admin.command("ping")
            except PyMongoError as exc:
                client.close()
                logger.warning(
                    "mongodb_connect_failed attempt=%d/%d error=%s",
                    attempt,
                    max_retries,
                    exc,
                )
                if attempt < max_retries:
                    time.sleep(retry_delay)
                continue

            self.client = client
            self.db = client[self.db_name]
            logger.info(
                "mongodb_connected host=%s db=%s attempt=%d", self.host, self.db_name, attempt
            )
            return True

        logger.error("mongodb_unreachable host=%s attempts=%d", self.host, max_retries)
        return False
