"""Progress tracking API endpoints.

Provides routes for:
- Reading and initializing the caller's progress record
- Marking lessons complete
- Resume position for a course
- Dashboard progress bars
"""

from fastapi import APIRouter, status

from courseledger.auth.dependencies import CurrentUserId
from courseledger.catalog.dependencies import CatalogServiceDep
from courseledger.catalog.service import CourseNotFoundError
from courseledger.core.exceptions import AppError

from .dependencies import ProgressLedgerDep, handle_progress_error
from .models import CompletionStatus, percent_for
from .schemas import (
    DashboardCourse,
    DashboardResponse,
    LessonCompletionResponse,
    ProgressRecordResponse,
    ResumePositionResponse,
)


router = APIRouter(prefix="/v1/progress", tags=["progress"])
dashboard_router = APIRouter(prefix="/v1/dashboard", tags=["dashboard"])


# ==============================================================================
# Progress Record Endpoints
# ==============================================================================


@router.get(
    "",
    response_model=ProgressRecordResponse,
    summary="Get my progress",
)
async def get_my_progress(
    ledger: ProgressLedgerDep,
    user_id: CurrentUserId,
) -> ProgressRecordResponse:
    """Read the caller's progress record without creating it."""
    try:
        record = await ledger.get_progress(user_id)
    except AppError as e:
        raise handle_progress_error(e) from e
    return ProgressRecordResponse.from_entity(record)


@router.post(
    "",
    response_model=ProgressRecordResponse,
    status_code=status.HTTP_200_OK,
    summary="Initialize my progress",
)
async def init_my_progress(
    ledger: ProgressLedgerDep,
    user_id: CurrentUserId,
) -> ProgressRecordResponse:
    """Ensure the caller has a progress record.

    Called by the client right after sign-up or sign-in. Safe to repeat.
    """
    try:
        record = await ledger.get_or_create_progress(user_id)
    except AppError as e:
        raise handle_progress_error(e) from e
    return ProgressRecordResponse.from_entity(record)


# ==============================================================================
# Lesson Completion Endpoints
# ==============================================================================


@router.post(
    "/{course_id}/lessons/{lesson_index}/complete",
    response_model=LessonCompletionResponse,
    status_code=status.HTTP_200_OK,
    summary="Mark lesson as complete",
)
async def mark_lesson_complete(
    course_id: str,
    lesson_index: int,
    ledger: ProgressLedgerDep,
    user_id: CurrentUserId,
) -> LessonCompletionResponse:
    """Mark a lesson complete and return the course percentage.

    Repeating the call for the same lesson is a no-op that returns the same
    percentage with recorded=false.
    """
    try:
        result = await ledger.mark_lesson_complete(user_id, course_id, lesson_index)
    except AppError as e:
        raise handle_progress_error(e) from e

    if result.status == CompletionStatus.COURSE_NOT_FOUND:
        raise handle_progress_error(CourseNotFoundError(course_id))

    return LessonCompletionResponse.from_result(result)


# ==============================================================================
# Resume Endpoints
# ==============================================================================


@router.get(
    "/{course_id}/resume",
    response_model=ResumePositionResponse,
    summary="Get resume position",
)
async def get_resume_position(
    course_id: str,
    ledger: ProgressLedgerDep,
    user_id: CurrentUserId,
) -> ResumePositionResponse:
    """Lesson the caller should land on when reopening a course."""
    try:
        course, progress, lesson_index = await ledger.get_resume_position(
            user_id, course_id
        )
    except AppError as e:
        raise handle_progress_error(e) from e

    lesson = course.lesson_at(lesson_index)
    return ResumePositionResponse(
        course_id=course_id,
        lesson_index=lesson_index,
        lesson_title=lesson.title if lesson else None,
        progress_percent=progress.progress_percent if progress else 0,
        completed_lessons=progress.sorted_lessons if progress else [],
    )


# ==============================================================================
# Dashboard Endpoints
# ==============================================================================


@dashboard_router.get(
    "",
    response_model=DashboardResponse,
    summary="Get dashboard",
)
async def get_dashboard(
    ledger: ProgressLedgerDep,
    catalog: CatalogServiceDep,
    user_id: CurrentUserId,
) -> DashboardResponse:
    """Every catalog course with the caller's progress percentage."""
    try:
        record = await ledger.get_progress(user_id)
    except AppError as e:
        raise handle_progress_error(e) from e

    courses = await catalog.list_courses()
    return DashboardResponse(
        user_id=user_id,
        courses=[
            DashboardCourse(
                course_id=course.id,
                title=course.title,
                description=course.description,
                total_lessons=course.total_lessons,
                progress_percent=percent_for(course.id, record),
            )
            for course in courses
        ],
    )
