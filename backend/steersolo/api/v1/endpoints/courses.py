"""
Course API Endpoints.

Course catalog and the current user's enrollments. Completing a
course awards its reward points once.
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from steersolo.api.deps import get_current_user
from steersolo.api.v1.serializers import course_to_dict, enrollment_to_dict
from steersolo.core.database import get_db
from steersolo.models.user import User
from steersolo.modules.rewards import CourseService

router = APIRouter()


class ProgressRequest(BaseModel):
    progress: int = Field(ge=0, le=100)


@router.get("")
async def list_courses(
    audience: str | None = Query(None, description="customer, shop_owner or all"),
    db: AsyncSession = Depends(get_db),
) -> list[dict[str, Any]]:
    """Active courses, newest first."""
    courses = await CourseService(db).get_courses(audience=audience)
    return [course_to_dict(course) for course in courses]


@router.get("/enrollments")
async def get_my_enrollments(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[dict[str, Any]]:
    enrollments = await CourseService(db).get_enrollments(user)
    return [enrollment_to_dict(enrollment) for enrollment in enrollments]


@router.get("/{course_id}")
async def get_course(
    course_id: int,
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    course = await CourseService(db).get_course(course_id)
    if not course.is_active:
        raise HTTPException(status_code=404, detail="Course not found")

    return course_to_dict(course, with_content=True)


@router.post("/{course_id}/enroll")
async def enroll(
    course_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Enroll in a course. Enrolling again returns the existing enrollment."""
    enrollment = await CourseService(db).enroll(user, course_id)
    return enrollment_to_dict(enrollment)


@router.patch("/{course_id}/progress")
async def update_progress(
    course_id: int,
    request: ProgressRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Record progress. 100 completes the course."""
    courses = CourseService(db)
    enrollment = await courses.get_enrollment(user, course_id)
    if not enrollment:
        raise HTTPException(status_code=404, detail="Not enrolled in this course")

    enrollment = await courses.update_progress(enrollment, request.progress)
    return enrollment_to_dict(enrollment)


@router.post("/{course_id}/complete")
async def complete_course(
    course_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    courses = CourseService(db)
    enrollment = await courses.get_enrollment(user, course_id)
    if not enrollment:
        raise HTTPException(status_code=404, detail="Not enrolled in this course")

    enrollment = await courses.complete(enrollment)
    return enrollment_to_dict(enrollment)
