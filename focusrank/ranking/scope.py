"""Scope resolution: which users are eligible for a leaderboard view."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .errors import InvalidLeaderboardRequest

logger = logging.getLogger(__name__)

GLOBAL = "global"
FRIENDS = "friends"
COUNTRY = "country"

SCOPES = (GLOBAL, FRIENDS, COUNTRY)

SCOPE_LABELS = {
    GLOBAL: "Global",
    FRIENDS: "Friends",
    COUNTRY: "Country",
}


class ScopeFilter:
    """Eligibility predicate that can be pushed into store queries.

    Exactly one of these shapes applies:
    - everyone (global)
    - an explicit id set (friends), usable against event collections too
    - a country match on user documents
    - nobody (unresolvable country)
    """

    def __init__(
        self,
        user_ids: Optional[Iterable[Any]] = None,
        country: Optional[str] = None,
        empty: bool = False,
    ) -> None:
        self.user_ids: Optional[List[Any]] = None
        if user_ids is not None:
            # dict.fromkeys keeps first-seen order while dropping duplicates
            self.user_ids = list(dict.fromkeys(user_ids))
        self.country = country
        self.is_empty = empty

    @classmethod
    def everyone(cls) -> "ScopeFilter":
        return cls()

    @classmethod
    def members(cls, user_ids: Iterable[Any]) -> "ScopeFilter":
        return cls(user_ids=user_ids)

    @classmethod
    def in_country(cls, country: str) -> "ScopeFilter":
        return cls(country=country)

    @classmethod
    def nobody(cls) -> "ScopeFilter":
        return cls(empty=True)

    @property
    def is_global(self) -> bool:
        return not self.is_empty and self.user_ids is None and self.country is None

    def user_filter(self) -> Dict[str, Any]:
        """Filter over the `users` collection."""
        if self.is_empty:
            return {"_id": {"$in": []}}
        if self.user_ids is not None:
            return {"_id": {"$in": list(self.user_ids)}}
        if self.country is not None:
            return {"profile.country": self.country}
        return {}

    def event_filter(self, owner_field: str) -> Dict[str, Any]:
        """Filter over an event collection; only id sets can be pushed down."""
        if self.is_empty:
            return {owner_field: {"$in": []}}
        if self.user_ids is not None:
            return {owner_field: {"$in": list(self.user_ids)}}
        return {}

    def admits(self, user: Optional[Mapping[str, Any]]) -> bool:
        if self.is_empty or not user:
            return False
        if self.user_ids is not None:
            return user.get("_id") in self.user_ids
        if self.country is not None:
            profile = user.get("profile") or {}
            return profile.get("country") == self.country
        return True

    def __repr__(self) -> str:
        if self.is_empty:
            return "ScopeFilter(nobody)"
        if self.user_ids is not None:
            return f"ScopeFilter(members={len(self.user_ids)})"
        if self.country is not None:
            return f"ScopeFilter(country={self.country!r})"
        return "ScopeFilter(everyone)"


class ScopeResolver:
    """Turns ``(caller, scope, country)`` into a ``ScopeFilter``."""

    def __init__(self, user_repository, friendship_repository) -> None:
        self.user_repository = user_repository
        self.friendship_repository = friendship_repository

    def resolve(
        self, caller_id: Any, scope: str, country: Optional[str] = None
    ) -> ScopeFilter:
        if scope == GLOBAL:
            return ScopeFilter.everyone()

        if scope == FRIENDS:
            friend_ids = self.friendship_repository.get_accepted_friend_ids(caller_id)
            logger.debug(
                "friends_scope_resolved caller=%s friends=%d", caller_id, len(friend_ids)
            )
            return ScopeFilter.members([*friend_ids, caller_id])

        if scope == COUNTRY:
            target = (country or "").strip()
            if not target:
                caller = self.user_repository.get_user_by_id(caller_id)
                profile = (caller or {}).get("profile") or {}
                target = (profile.get("country") or "").strip()
            if not target:
                logger.info("country_scope_unresolved caller=%s", caller_id)
                return ScopeFilter.nobody()
            return ScopeFilter.in_country(target)

        raise InvalidLeaderboardRequest("scope", scope, SCOPES)
