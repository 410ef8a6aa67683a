"""Course catalog API endpoints."""

from fastapi import APIRouter, Request

from courseledger.auth.dependencies import OptionalUserId
from courseledger.core.exceptions import AppError
from courseledger.progress.dependencies import get_progress_ledger

from .dependencies import CatalogServiceDep, handle_catalog_error
from .schemas import CourseDetailResponse, CourseListResponse, CourseSummaryResponse


router = APIRouter(prefix="/v1/courses", tags=["courses"])


@router.get("", response_model=CourseListResponse, summary="List courses")
async def list_courses(catalog: CatalogServiceDep) -> CourseListResponse:
    """List every course in the catalog."""
    courses = await catalog.list_courses()
    return CourseListResponse(
        items=[CourseSummaryResponse.from_entity(course) for course in courses],
        total=len(courses),
    )


@router.get(
    "/{course_id}",
    response_model=CourseDetailResponse,
    summary="Get course with lessons",
)
async def get_course(
    course_id: str,
    request: Request,
    catalog: CatalogServiceDep,
    user_id: OptionalUserId,
) -> CourseDetailResponse:
    """Course page data: title, description and ordered lessons.

    Signed-in callers also get the state of each lesson, so completed
    lessons can be highlighted.
    """
    try:
        course = await catalog.get_course(course_id)
        if user_id is None:
            return CourseDetailResponse.from_entity(course)

        ledger = await get_progress_ledger(request)
        record = await ledger.get_progress(user_id)
    except AppError as e:
        raise handle_catalog_error(e) from e

    return CourseDetailResponse.from_entity(
        course, signed_in=True, progress=record.course(course_id)
    )
