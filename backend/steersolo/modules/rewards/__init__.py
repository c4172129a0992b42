"""
Rewards Module.

Features:
- Reward points
- Prizes and claims
- Courses with completion rewards
"""

from steersolo.modules.rewards.courses import CourseService
from steersolo.modules.rewards.service import RewardsService

__all__ = [
    "CourseService",
    "RewardsService",
]
