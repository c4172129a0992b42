"""
Activity Module - audit trail of user actions.
"""

from steersolo.modules.activity.service import ActivityLogService

__all__ = ["ActivityLogService"]
