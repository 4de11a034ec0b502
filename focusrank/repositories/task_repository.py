"""Mongo repository for completed task counts."""

from __future__ import annotations

from .event_repository import EventRepository


class TaskRepository(EventRepository):
    """Completed tasks from the `tasks` collection, counted per owner."""

    time_field = "updatedAt"
    base_match = {"status": "completed"}
    accumulators = {"total": {"$sum": 1}}

    def __init__(self, db_controller) -> None:
        super().__init__(db_controller, "tasks")
