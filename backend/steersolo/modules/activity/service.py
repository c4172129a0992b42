"""
Activity Log Service - audit trail for the admin back office.
"""

from collections import Counter
from datetime import datetime, timedelta
from typing import Any

from loguru import logger
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from steersolo.core.utils import page_meta
from steersolo.models.activity import ActivityLog
from steersolo.models.user import User

ACTION_TYPES = {
    "create",
    "update",
    "delete",
    "login",
    "logout",
    "view",
    "export",
    "approve",
    "reject",
    "payment",
    "signup",
}

RESOURCE_TYPES = {
    "shop",
    "product",
    "order",
    "booking",
    "user",
    "review",
    "subscription",
    "payment",
    "payout",
    "coupon",
    "prize",
    "course",
    "auth",
}


class ActivityLogService:
    """
    Records and queries user activity.

    Usage:
        activity = ActivityLogService(db_session)
        await activity.log("create", "shop", user=owner, resource_id=shop.id)
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def log(
        self,
        action_type: str,
        resource_type: str,
        user: User | None = None,
        resource_id: Any = None,
        resource_name: str | None = None,
        details: dict[str, Any] | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> ActivityLog | None:
        """
        Record an activity. Failures are logged, never raised.

        Returns:
            The stored entry, or None if it could not be written
        """
        if action_type not in ACTION_TYPES or resource_type not in RESOURCE_TYPES:
            logger.warning(f"Unknown activity type {action_type}/{resource_type}")

        entry = ActivityLog(
            user_id=user.id if user else None,
            user_email=user.email if user else None,
            action_type=action_type,
            resource_type=resource_type,
            resource_id=str(resource_id) if resource_id is not None else None,
            resource_name=resource_name,
            details=details or {},
            ip_address=ip_address,
            user_agent=user_agent,
        )
        try:
            self.db.add(entry)
            await self.db.flush()
        except Exception as e:
            logger.error(f"Activity log error: {e}")
            return None
        return entry

    async def get_activity_logs(
        self,
        page: int = 1,
        limit: int = 50,
        resource_type: str | None = None,
        action_type: str | None = None,
        user_id: int | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        search: str | None = None,
    ) -> dict[str, Any]:
        """
        Get activity logs with filtering, newest first.

        Returns:
            {"items": [...], "meta": {page, limit, total, total_pages}}
        """
        conditions = []
        if resource_type:
            conditions.append(ActivityLog.resource_type == resource_type)
        if action_type:
            conditions.append(ActivityLog.action_type == action_type)
        if user_id:
            conditions.append(ActivityLog.user_id == user_id)
        if start_date:
            conditions.append(ActivityLog.created_at >= start_date)
        if end_date:
            conditions.append(ActivityLog.created_at <= end_date)
        if search:
            pattern = f"%{search}%"
            conditions.append(
                or_(
                    ActivityLog.user_email.ilike(pattern),
                    ActivityLog.resource_name.ilike(pattern),
                )
            )

        total = await self.db.scalar(
            select(func.count()).select_from(ActivityLog).where(*conditions)
        )

        query = (
            select(ActivityLog)
            .where(*conditions)
            .order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        result = await self.db.execute(query)

        return {
            "items": list(result.scalars().all()),
            "meta": page_meta(page, limit, total or 0),
        }

    async def get_activity_stats(self, days: int = 7) -> dict[str, Any]:
        """Count activity by action and resource type over the last N days."""
        since = datetime.utcnow() - timedelta(days=days)
        result = await self.db.execute(
            select(ActivityLog.action_type, ActivityLog.resource_type).where(
                ActivityLog.created_at >= since
            )
        )
        rows = result.all()

        return {
            "total": len(rows),
            "by_action": dict(Counter(row.action_type for row in rows)),
            "by_resource": dict(Counter(row.resource_type for row in rows)),
        }
