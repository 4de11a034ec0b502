"""Mongo repositories consumed by the ranking engine."""

from .base_repository import BaseRepository, store_operation, to_object_id
from .friendship_repository import FriendshipRepository
from .session_repository import SessionRepository
from .task_repository import TaskRepository
from .user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "FriendshipRepository",
    "SessionRepository",
    "TaskRepository",
    "UserRepository",
    "store_operation",
    "to_object_id",
]
