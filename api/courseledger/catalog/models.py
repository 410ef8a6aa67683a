"""Course catalog models.

The catalog is read-only to the rest of the system: the progress ledger only
needs a course's lesson count, while the API shows titles, media references
and notes.
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator


class LessonSpec(BaseModel):
    """A single lesson within a course."""

    model_config = ConfigDict(frozen=True)

    title: str = Field(..., min_length=1)
    media_ref: str = Field(default="", description="Video URL or media key")
    notes: str = ""


class CourseCatalogEntry(BaseModel):
    """Course description as published in the catalog.

    total_lessons falls back to len(lessons) when omitted. A declared count
    that disagrees with the lesson list is kept as declared (see has_drift).
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    title: str
    description: str = ""
    total_lessons: int = Field(default=0, ge=0, description="Declared lesson count")
    lessons: tuple[LessonSpec, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def _default_total_lessons(cls, data: object) -> object:
        if isinstance(data, dict) and data.get("total_lessons") is None:
            data = {**data, "total_lessons": len(data.get("lessons") or ())}
        return data

    @property
    def has_drift(self) -> bool:
        """Declared lesson count differs from the lesson list."""
        return self.total_lessons != len(self.lessons)

    def lesson_at(self, index: int) -> LessonSpec | None:
        """Lesson at a zero-based position, or None if there is none."""
        if 0 <= index < len(self.lessons):
            return self.lessons[index]
        return None
