"""Mongo repository for focus session aggregates."""

from __future__ import annotations

from .event_repository import EventRepository


class SessionRepository(EventRepository):
    """Completed focus sessions from the `sessions` collection.

    ``total`` is the summed ``duration`` in seconds and ``count`` the number
    of sessions that contributed to it.
    """

    time_field = "startTime"
    base_match = {"type": "focus", "completed": True}
    accumulators = {
        "total": {"$sum": "$duration"},
        "count": {"$sum": 1},
    }

    def __init__(self, db_controller) -> None:
        super().__init__(db_controller, "sessions")
