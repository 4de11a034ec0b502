"""Shared repository helpers for Mongo-backed collections."""

from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Callable, TypeVar

from bson import ObjectId
from bson.errors import InvalidId
from pymongo.errors import PyMongoError

from focusrank.database import DBController
from focusrank.ranking.errors import StoreFailure

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def store_operation(func: F) -> F:
    """Translate PyMongo errors raised by ``func`` into ``StoreFailure``."""

    @wraps(func)
    def wrapper(self, *args, **kwargs):
        operation = f"{self.collection_name}.{func.__name__}"
        try:
            return func(self, *args, **kwargs)
        except PyMongoError as exc:
            logger.error("store_query_failed operation=%s error=%s", operation, exc)
            raise StoreFailure(operation, str(exc)) from exc

    return wrapper  # type: ignore[return-value]


def to_object_id(value: Any) -> Any:
    """Return ``value`` as an ObjectId when it is a valid hex id string.

    Ids that are already ObjectIds, or strings that are not valid ObjectIds,
    are returned unchanged so lookups still work against string-keyed data.
    """

    if isinstance(value, str):
        try:
            return ObjectId(value)
        except (InvalidId, TypeError):
            return value
    return value


class BaseRepository:
    """Base repository providing lazy collection access."""

    collection_name: str

    def __init__(self, db_controller: DBController, collection_name: str) -> None:
        if not collection_name:
            raise ValueError("collection_name is required")
        self._db_controller = db_controller
        self.collection_name = collection_name
        self._collection = None

    @property
    def collection(self):
        if self._collection is None:
            db = self._db_controller.db
            if db is None:
                raise RuntimeError(
                    "Database not connected. Call DBController.connect() before using repositories."
                )
            self._collection = db[self.collection_name]
        return self._collection
