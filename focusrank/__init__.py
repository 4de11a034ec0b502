"""Leaderboard ranking service for focus, streak, task and XP metrics."""

from focusrank.database import DBController

__all__ = ["DBController"]
