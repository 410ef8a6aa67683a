"""Course catalog service.

The catalog is small and changes rarely, so it is held in memory and
loaded once at startup, either from the built-in courses below or from a
JSON file:

    {"courses": [{"id": "intro-html", "title": "...", "lessons": [...]}]}
"""

from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING

import orjson
import structlog
from pydantic import ValidationError

from courseledger.core.exceptions import AppError, StoreUnavailableError

from .models import CourseCatalogEntry, LessonSpec


if TYPE_CHECKING:
    from courseledger.config.settings import Settings

logger = structlog.get_logger(__name__)


class CatalogError(AppError):
    """Catalog definition is malformed."""

    def __init__(self, message: str):
        super().__init__(message, "invalid_catalog")


class CourseNotFoundError(AppError):
    """Referenced course does not exist in the catalog."""

    def __init__(self, course_id: str):
        self.course_id = course_id
        super().__init__(f"Course '{course_id}' was not found", "course_not_found")


def _lessons(course_id: str, titles: list[str]) -> tuple[LessonSpec, ...]:
    return tuple(
        LessonSpec(
            title=title,
            media_ref=f"videos/{course_id}/{position:02d}.mp4",
        )
        for position, title in enumerate(titles, start=1)
    )


DEFAULT_COURSES: tuple[CourseCatalogEntry, ...] = (
    CourseCatalogEntry(
        id="intro-html",
        title="Introduction to HTML",
        description="Learn the basics of web structure.",
        lessons=_lessons(
            "intro-html",
            [
                "Documents and elements",
                "Text and headings",
                "Links and images",
                "Lists and tables",
                "Forms",
            ],
        ),
    ),
    CourseCatalogEntry(
        id="mastering-css",
        title="Mastering CSS",
        description="Design beautiful, responsive websites.",
        lessons=_lessons(
            "mastering-css",
            [
                "Selectors and specificity",
                "The box model",
                "Typography",
                "Colors and backgrounds",
                "Flexbox",
                "Grid",
                "Responsive design",
                "Transitions and animations",
            ],
        ),
    ),
)


class CatalogService:
    """Read-only lookup of catalog entries by course id."""

    def __init__(self, courses: Iterable[CourseCatalogEntry]):
        self._courses: dict[str, CourseCatalogEntry] = {}
        for course in courses:
            if course.id in self._courses:
                msg = f"Duplicate course id '{course.id}' in catalog"
                raise CatalogError(msg)
            if course.has_drift:
                logger.warning(
                    "catalog_lesson_count_drift",
                    course_id=course.id,
                    total_lessons=course.total_lessons,
                    lessons_listed=len(course.lessons),
                )
            self._courses[course.id] = course

    @classmethod
    def default(cls) -> "CatalogService":
        """Catalog built from the built-in courses."""
        return cls(DEFAULT_COURSES)

    @classmethod
    def from_file(cls, path: str | Path) -> "CatalogService":
        """Load a catalog from a JSON file.

        Raises:
            StoreUnavailableError: If the file cannot be read
            CatalogError: If the content is not a valid catalog
        """
        path = Path(path)
        try:
            raw = path.read_bytes()
        except OSError as e:
            logger.error("catalog_read_failed", path=str(path), error=str(e))
            msg = f"Course catalog at {path} could not be read"
            raise StoreUnavailableError(msg) from e

        try:
            data = orjson.loads(raw)
            courses = [
                CourseCatalogEntry.model_validate(item) for item in data["courses"]
            ]
        except (orjson.JSONDecodeError, KeyError, TypeError, ValidationError) as e:
            msg = f"Course catalog at {path} is invalid: {e}"
            raise CatalogError(msg) from e

        logger.info("catalog_loaded", path=str(path), courses=len(courses))
        return cls(courses)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "CatalogService":
        """Catalog from settings.catalog_path, or the default catalog."""
        if settings.catalog_path:
            return cls.from_file(settings.catalog_path)
        return cls.default()

    async def list_courses(self) -> list[CourseCatalogEntry]:
        """All courses in catalog order."""
        return list(self._courses.values())

    async def find_course(self, course_id: str) -> CourseCatalogEntry | None:
        """Course by id, or None when unknown."""
        return self._courses.get(course_id)

    async def get_course(self, course_id: str) -> CourseCatalogEntry:
        """Course by id.

        Raises:
            CourseNotFoundError: If the course is not in the catalog
        """
        course = self._courses.get(course_id)
        if course is None:
            raise CourseNotFoundError(course_id)
        return course
