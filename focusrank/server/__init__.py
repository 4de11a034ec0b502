"""Flask HTTP surface for the leaderboard service."""
