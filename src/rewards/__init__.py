"""
EcoFlow - Rewards Module
Points and leaderboards driven by lifecycle events.
"""

from src.rewards.ledger import RewardLedger, PointsBalance, LeaderboardEntry

__all__ = [
    "RewardLedger",
    "PointsBalance",
    "LeaderboardEntry",
]
