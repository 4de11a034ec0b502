"""Grouped aggregation helpers for per-user event collections."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from .base_repository import BaseRepository, store_operation, to_object_id
from .user_repository import PROFILE_PROJECTION


class EventRepository(BaseRepository):
    """Sums or counts event documents per owner.

    Subclasses describe which documents count (``base_match``), which field
    carries the owner id and timestamp, and the ``$group`` accumulators. Every
    accumulator set must produce a ``total`` field; that is the ranked value.
    Owners are joined from ``owners_collection`` so rankings only ever include
    users that exist and fall inside the requested scope.
    """

    owner_field = "userId"
    owners_collection = "users"
    time_field: str
    base_match: Dict[str, Any]
    accumulators: Dict[str, Any]

    def build_match(
        self, since: Optional[datetime] = None, extra: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        match = dict(self.base_match)
        if since is not None:
            match[self.time_field] = {"$gte": since}
        if extra:
            match.update(extra)
        return match

    def _group_stage(self) -> Dict[str, Any]:
        return {"$group": {"_id": f"${self.owner_field}", **self.accumulators}}

    def _owner_stages(
        self, owner_filter: Dict[str, Any], projection: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        # Groups without an eligible owner are dropped by the unwind
        return [
            {
                "$lookup": {
                    "from": self.owners_collection,
                    "localField": "_id",
                    "foreignField": "_id",
                    "pipeline": [{"$match": owner_filter}, {"$project": projection}],
                    "as": "owner",
                }
            },
            {"$unwind": "$owner"},
        ]

    @store_operation
    def aggregate_ranked_owners(
        self, match: Dict[str, Any], owner_filter: Dict[str, Any], limit: int
    ) -> List[Dict[str, Any]]:
        """Top ``limit`` groups with an eligible owner, highest total first.

        Equal totals are ordered by owner id. Each group carries its owner's
        profile under ``owner``.
        """
        pipeline: List[Dict[str, Any]] = [
            {"$match": match},
            self._group_stage(),
            {"$sort": {"total": -1, "_id": 1}},
            *self._owner_stages(owner_filter, PROFILE_PROJECTION),
            {"$limit": limit},
        ]
        return list(self.collection.aggregate(pipeline))

    @store_operation
    def totals_for_user(
        self, user_id: Any, since: Optional[datetime] = None
    ) -> Optional[Dict[str, Any]]:
        match = self.build_match(since, {self.owner_field: to_object_id(user_id)})
        results = list(self.collection.aggregate([{"$match": match}, self._group_stage()]))
        return results[0] if results else None

    @store_operation
    def count_outranking_owners(
        self,
        match: Dict[str, Any],
        group_filter: Dict[str, Any],
        owner_filter: Dict[str, Any],
    ) -> int:
        """Count eligible owners whose grouped totals satisfy ``group_filter``."""
        pipeline = [
            {"$match": match},
            self._group_stage(),
            {"$match": group_filter},
            *self._owner_stages(owner_filter, {"_id": 1}),
            {"$count": "total"},
        ]
        results = list(self.collection.aggregate(pipeline))
        return results[0]["total"] if results else 0
