"""Read-only Mongo repository for the friendship graph."""

from __future__ import annotations

from typing import Any, List

from .base_repository import BaseRepository, store_operation, to_object_id

ACCEPTED = "accepted"


class FriendshipRepository(BaseRepository):
    """Looks up accepted edges in the `friends` collection.

    Friendships are stored once per direction, so the rows owned by a user
    are enough to list that user's friends.
    """

    def __init__(self, db_controller) -> None:
        super().__init__(db_controller, "friends")

    @store_operation
    def get_accepted_friend_ids(self, user_id: Any) -> List[Any]:
        rows = self.collection.find(
            {"user_id": to_object_id(user_id), "status": ACCEPTED},
            {"friend_id": 1},
        )
        return [row["friend_id"] for row in rows if row.get("friend_id") is not None]
