"""Verified Proof-of-Learning leaderboard."""

from .leaderboard import FAILURE_DUPLICATE, Leaderboard, LeaderboardEntry, SubmissionRejected

__all__: list[str] = [
    "FAILURE_DUPLICATE",
    "Leaderboard",
    "LeaderboardEntry",
    "SubmissionRejected",
]
