"""Pydantic schemas for progress endpoints."""

from datetime import datetime

from pydantic import BaseModel, Field

from .models import CompletionResult, CompletionStatus, CourseProgress, ProgressRecord


class CourseProgressResponse(BaseModel):
    """Completion state of one course."""

    course_id: str
    completed_lessons: list[int] = Field(description="Sorted lesson indexes")
    total_lessons: int
    progress_percent: int = Field(ge=0, le=100)
    updated_at: datetime | None = None

    @classmethod
    def from_entity(cls, entity: CourseProgress) -> "CourseProgressResponse":
        """Create response from entity."""
        return cls(
            course_id=entity.course_id,
            completed_lessons=entity.sorted_lessons,
            total_lessons=entity.total_lessons,
            progress_percent=entity.progress_percent,
            updated_at=entity.updated_at,
        )


class ProgressRecordResponse(BaseModel):
    """A user's progress across all courses."""

    user_id: str
    created_at: datetime | None = None
    enrolled_courses: dict[str, CourseProgressResponse] = {}

    @classmethod
    def from_entity(cls, entity: ProgressRecord) -> "ProgressRecordResponse":
        """Create response from entity."""
        return cls(
            user_id=entity.user_id,
            created_at=entity.created_at,
            enrolled_courses={
                course_id: CourseProgressResponse.from_entity(progress)
                for course_id, progress in sorted(entity.courses.items())
            },
        )


class LessonCompletionResponse(BaseModel):
    """Result of marking a lesson complete."""

    course_id: str
    lesson_index: int
    status: CompletionStatus
    recorded: bool = Field(description="True when this request stored a completion")
    progress_percent: int

    @classmethod
    def from_result(cls, result: CompletionResult) -> "LessonCompletionResponse":
        """Create response from a completion result."""
        return cls(
            course_id=result.course_id,
            lesson_index=result.lesson_index,
            status=result.status,
            recorded=result.recorded,
            progress_percent=result.progress_percent,
        )


class ResumePositionResponse(BaseModel):
    """Where a returning user should land in a course."""

    course_id: str
    lesson_index: int
    lesson_title: str | None = None
    progress_percent: int
    completed_lessons: list[int] = []


class DashboardCourse(BaseModel):
    """Course card with the caller's progress bar value."""

    course_id: str
    title: str
    description: str
    total_lessons: int
    progress_percent: int


class DashboardResponse(BaseModel):
    """All catalog courses with the caller's progress."""

    user_id: str
    courses: list[DashboardCourse]
