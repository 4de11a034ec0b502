"""Read-only Mongo repository for user profile documents."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .base_repository import BaseRepository, store_operation, to_object_id

logger = logging.getLogger(__name__)

# Fields the leaderboard needs from a user document
PROFILE_PROJECTION = {
    "name": 1,
    "username": 1,
    "email": 1,
    "avatar_url": 1,
    "profile.level": 1,
    "profile.xp": 1,
    "profile.country": 1,
    "profile.streak_days": 1,
    "profile.best_streak": 1,
}


class UserRepository(BaseRepository):
    """Profile lookups, ranked aggregations and counts over the `users` collection."""

    def __init__(self, db_controller) -> None:
        super().__init__(db_controller, "users")

    @store_operation
    def get_user_by_id(self, user_id: Any) -> Optional[Dict[str, Any]]:
        return self.collection.find_one(
            {"_id": to_object_id(user_id)}, PROFILE_PROJECTION
        )

    @store_operation
    def get_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        if not isinstance(email, str) or "@" not in email or len(email) < 3:
            raise ValueError("Invalid email format")
        return self.collection.find_one({"email": email}, PROFILE_PROJECTION)

    @store_operation
    def aggregate_ranked(
        self,
        user_filter: Dict[str, Any],
        rank_fields: Dict[str, Any],
        sort: Sequence[Tuple[str, int]],
        limit: int,
    ) -> List[Dict[str, Any]]:
        """Return up to ``limit`` users matching ``user_filter``.

        ``rank_fields`` is an ``$addFields`` spec; ``sort`` orders on its keys
        so missing profile fields sort as their computed defaults.
        """
        pipeline = [
            {"$match": user_filter},
            {"$addFields": rank_fields},
            {"$sort": dict(sort)},
            {"$limit": limit},
            {"$project": PROFILE_PROJECTION},
        ]
        return list(self.collection.aggregate(pipeline))

    @store_operation
    def count_ranked_above(
        self,
        user_filter: Dict[str, Any],
        rank_fields: Dict[str, Any],
        above: Dict[str, Any],
    ) -> int:
        """Count users in ``user_filter`` whose computed rank fields match ``above``."""
        pipeline = [
            {"$match": user_filter},
            {"$addFields": rank_fields},
            {"$match": above},
            {"$count": "total"},
        ]
        results = list(self.collection.aggregate(pipeline))
        return results[0]["total"] if results else 0

    @store_operation
    def get_available_countries(self) -> List[str]:
        """Distinct non-blank countries across all users, sorted alphabetically."""
        countries = self.collection.distinct("profile.country")
        return sorted(
            {c.strip() for c in countries if isinstance(c, str) and c.strip()}
        )
