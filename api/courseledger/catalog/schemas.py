"""Pydantic schemas for catalog endpoints."""

from pydantic import BaseModel, Field

from courseledger.progress.models import CourseProgress, LessonState

from .models import CourseCatalogEntry


class LessonResponse(BaseModel):
    """Lesson as shown on the course page."""

    index: int = Field(description="Zero-based lesson index")
    title: str
    media_ref: str
    notes: str = ""
    state: LessonState | None = Field(
        default=None, description="Caller's lesson state; null when signed out"
    )


class CourseSummaryResponse(BaseModel):
    """Course listing entry."""

    id: str
    title: str
    description: str
    total_lessons: int

    @classmethod
    def from_entity(cls, entity: CourseCatalogEntry) -> "CourseSummaryResponse":
        """Create response from catalog entry."""
        return cls(
            id=entity.id,
            title=entity.title,
            description=entity.description,
            total_lessons=entity.total_lessons,
        )


class CourseDetailResponse(CourseSummaryResponse):
    """Course with its ordered lessons."""

    lessons: list[LessonResponse] = []

    @classmethod
    def from_entity(
        cls,
        entity: CourseCatalogEntry,
        signed_in: bool = False,
        progress: CourseProgress | None = None,
    ) -> "CourseDetailResponse":
        """Create response from catalog entry.

        For a signed-in caller each lesson carries its state, taken from
        progress (every lesson NOT_STARTED when there is none).
        """
        return cls(
            id=entity.id,
            title=entity.title,
            description=entity.description,
            total_lessons=entity.total_lessons,
            lessons=[
                LessonResponse(
                    index=index,
                    title=lesson.title,
                    media_ref=lesson.media_ref,
                    notes=lesson.notes,
                    state=_lesson_state(index, progress) if signed_in else None,
                )
                for index, lesson in enumerate(entity.lessons)
            ],
        )


class CourseListResponse(BaseModel):
    """List of catalog courses."""

    items: list[CourseSummaryResponse]
    total: int


def _lesson_state(index: int, progress: CourseProgress | None) -> LessonState:
    if progress is None:
        return LessonState.NOT_STARTED
    return progress.lesson_state(index)
