"""
Course Service - learning content and enrollments.
"""

from datetime import datetime
from typing import Any

from loguru import logger
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from steersolo.core.exceptions import InvalidRequestError, NotFoundError
from steersolo.models.rewards import Course, CourseEnrollment
from steersolo.models.user import User
from steersolo.modules.rewards.service import RewardsService

COURSE_FIELDS = {
    "title",
    "description",
    "content",
    "image_url",
    "video_url",
    "reward_points",
    "target_audience",
    "is_active",
}


class CourseService:
    """
    Service for courses.

    Usage:
        courses = CourseService(db_session)
        enrollment = await courses.enroll(user, course.id)
        await courses.complete(enrollment)
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_courses(
        self,
        audience: str | None = None,
        include_inactive: bool = False,
    ) -> list[Course]:
        """Courses, newest first. An audience also matches courses for "all"."""
        query = select(Course)
        if not include_inactive:
            query = query.where(Course.is_active == True)
        if audience:
            query = query.where(
                or_(Course.target_audience == audience, Course.target_audience == "all")
            )
        query = query.order_by(Course.created_at.desc(), Course.id.desc())
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_course(self, course_id: int) -> Course:
        course = await self.db.get(Course, course_id)
        if not course:
            raise NotFoundError("Course not found")
        return course

    async def create_course(self, creator: User, **fields: Any) -> Course:
        if not fields.get("title"):
            raise InvalidRequestError("Course title is required")
        course = Course(
            created_by=creator.id,
            **{key: value for key, value in fields.items() if key in COURSE_FIELDS},
        )
        self.db.add(course)
        await self.db.flush()
        return course

    async def update_course(self, course: Course, **fields: Any) -> Course:
        for key, value in fields.items():
            if key in COURSE_FIELDS:
                setattr(course, key, value)
        await self.db.flush()
        return course

    async def delete_course(self, course: Course) -> None:
        course.is_active = False
        await self.db.flush()

    # ==================== Enrollments ====================

    async def get_enrollment(self, user: User, course_id: int) -> CourseEnrollment | None:
        result = await self.db.execute(
            select(CourseEnrollment).where(
                CourseEnrollment.user_id == user.id,
                CourseEnrollment.course_id == course_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_enrollments(self, user: User) -> list[CourseEnrollment]:
        result = await self.db.execute(
            select(CourseEnrollment)
            .where(CourseEnrollment.user_id == user.id)
            .order_by(CourseEnrollment.enrolled_at.desc(), CourseEnrollment.id.desc())
        )
        return list(result.scalars().all())

    async def enroll(self, user: User, course_id: int) -> CourseEnrollment:
        """Enroll in an active course. Enrolling twice returns the same enrollment."""
        course = await self.get_course(course_id)
        if not course.is_active:
            raise NotFoundError("Course not found")

        enrollment = await self.get_enrollment(user, course_id)
        if enrollment:
            return enrollment

        enrollment = CourseEnrollment(user_id=user.id, course_id=course.id, progress=0)
        self.db.add(enrollment)
        await self.db.flush()
        return enrollment

    async def update_progress(self, enrollment: CourseEnrollment, progress: int) -> CourseEnrollment:
        if not 0 <= progress <= 100:
            raise InvalidRequestError("Progress must be between 0 and 100")
        if progress == 100:
            return await self.complete(enrollment)

        enrollment.progress = progress
        await self.db.flush()
        return enrollment

    async def complete(self, enrollment: CourseEnrollment) -> CourseEnrollment:
        """
        Finish a course and award its points once.

        Returns:
            The enrollment with completed_at set
        """
        enrollment.progress = 100
        if not enrollment.completed_at:
            enrollment.completed_at = datetime.utcnow()

        if not enrollment.reward_claimed:
            course = await self.get_course(enrollment.course_id)
            user = await self.db.get(User, enrollment.user_id)
            if course.reward_points > 0 and user:
                await RewardsService(self.db).add_points(user, course.reward_points)
            enrollment.reward_claimed = True
            logger.info(f"User {enrollment.user_id} completed course {enrollment.course_id}")

        await self.db.flush()
        return enrollment
