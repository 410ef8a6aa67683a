"""Progress record models.

Cassandra table definitions and entities for per-user lesson completion.

The user's progress "document" is one partition keyed by user_id:
- progress_records: header row, created on first sign-in
- course_progress: one row per course the user has completed lessons in

Each course_progress row carries a version used for conditional writes, so
concurrent sessions of the same user cannot overwrite each other's
completions.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any


class TotalLessonsPolicy(str, Enum):
    """Which lesson count a course's percentage is computed against."""

    SNAPSHOT = "snapshot"  # count captured on the first completion
    LIVE = "live"  # current catalog count, refreshed on every completion


class LessonState(str, Enum):
    """Per-lesson state. COMPLETED is terminal."""

    NOT_STARTED = "not_started"
    COMPLETED = "completed"


class CompletionStatus(str, Enum):
    """Outcome of marking a lesson complete."""

    COMPLETED = "completed"  # newly recorded, one write
    ALREADY_COMPLETED = "already_completed"  # no-op, no write
    COURSE_NOT_FOUND = "course_not_found"  # unknown course, nothing touched


# ==============================================================================
# Helper Functions
# ==============================================================================


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (Cassandra returns naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def calculate_progress_percent(completed_count: int, total_lessons: int) -> int:
    """Completed share of a course as an integer percentage.

    Rounds half up (1 of 8 lessons is 13%); a course without lessons is 0%.
    """
    if total_lessons <= 0:
        return 0
    percent = Decimal(100 * completed_count) / Decimal(total_lessons)
    return int(percent.quantize(Decimal(1), rounding=ROUND_HALF_UP))


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

PROGRESS_RECORDS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.progress_records (
    user_id TEXT PRIMARY KEY,
    created_at TIMESTAMP
)
"""

# Partition key: user_id (the whole enrolledCourses map in one read)
# Clustering: course_id
COURSE_PROGRESS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.course_progress (
    user_id TEXT,
    course_id TEXT,
    completed_lessons SET<INT>,
    total_lessons INT,
    progress_percent INT,
    version INT,
    updated_at TIMESTAMP,
    PRIMARY KEY (user_id, course_id)
) WITH CLUSTERING ORDER BY (course_id ASC)
"""

PROGRESS_TABLES_CQL = [
    PROGRESS_RECORDS_TABLE_CQL,
    COURSE_PROGRESS_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class CourseProgress:
    """Completion state of one course for one user.

    Attributes:
        user_id: Opaque user id
        course_id: Catalog course id
        completed_lessons: Zero-based indexes of completed lessons
        total_lessons: Lesson count the percentage is computed against
        progress_percent: round(100 * completed / total), 0 when total is 0
        version: Write counter; 0 means not yet stored
        updated_at: Last successful write
    """

    def __init__(
        self,
        user_id: str,
        course_id: str,
        completed_lessons: Iterable[int] = (),
        total_lessons: int = 0,
        progress_percent: int = 0,
        version: int = 0,
        updated_at: datetime | None = None,
    ):
        self.user_id = user_id
        self.course_id = course_id
        self.completed_lessons = frozenset(completed_lessons)
        self.total_lessons = total_lessons
        self.progress_percent = progress_percent
        self.version = version
        self.updated_at = ensure_utc_aware(updated_at)

    @classmethod
    def start(
        cls, user_id: str, course_id: str, total_lessons: int
    ) -> "CourseProgress":
        """Unsaved progress with nothing completed."""
        return cls(user_id=user_id, course_id=course_id, total_lessons=total_lessons)

    @property
    def is_persisted(self) -> bool:
        """Whether this progress has been written to the store."""
        return self.version > 0

    @property
    def sorted_lessons(self) -> list[int]:
        """Completed indexes in ascending order."""
        return sorted(self.completed_lessons)

    def lesson_state(self, lesson_index: int) -> LessonState:
        """State of a single lesson."""
        if lesson_index in self.completed_lessons:
            return LessonState.COMPLETED
        return LessonState.NOT_STARTED

    def with_completed_lesson(
        self, lesson_index: int, total_lessons: int
    ) -> "CourseProgress":
        """Next version of this progress with lesson_index completed.

        Indexes at or beyond total_lessons (left over after a catalog shrink)
        do not count towards the percentage.
        """
        completed = self.completed_lessons | {lesson_index}
        counted = sum(1 for index in completed if index < total_lessons)
        return CourseProgress(
            user_id=self.user_id,
            course_id=self.course_id,
            completed_lessons=completed,
            total_lessons=total_lessons,
            progress_percent=calculate_progress_percent(counted, total_lessons),
            version=self.version + 1,
            updated_at=datetime.now(UTC),
        )

    @classmethod
    def from_row(cls, row: Any) -> "CourseProgress":
        """Create CourseProgress from a Cassandra row."""
        return cls(
            user_id=row.user_id,
            course_id=row.course_id,
            # Cassandra returns None for an empty set
            completed_lessons=row.completed_lessons or (),
            total_lessons=row.total_lessons or 0,
            progress_percent=row.progress_percent or 0,
            version=row.version or 0,
            updated_at=row.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "user_id": self.user_id,
            "course_id": self.course_id,
            "completed_lessons": self.sorted_lessons,
            "total_lessons": self.total_lessons,
            "progress_percent": self.progress_percent,
            "version": self.version,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return (
            f"<CourseProgress user={self.user_id} course={self.course_id} "
            f"{len(self.completed_lessons)}/{self.total_lessons} "
            f"{self.progress_percent}% v{self.version}>"
        )


class ProgressRecord:
    """All course progress of one user.

    Attributes:
        user_id: Opaque user id
        courses: course_id -> CourseProgress
        created_at: When the record was created; None for an unsaved record
    """

    def __init__(
        self,
        user_id: str,
        courses: dict[str, CourseProgress] | None = None,
        created_at: datetime | None = None,
    ):
        self.user_id = user_id
        self.courses = dict(courses or {})
        self.created_at = ensure_utc_aware(created_at)

    @classmethod
    def empty(cls, user_id: str) -> "ProgressRecord":
        """Unsaved record without any progress."""
        return cls(user_id=user_id)

    @property
    def is_persisted(self) -> bool:
        """Whether the record header exists in the store."""
        return self.created_at is not None

    def course(self, course_id: str) -> CourseProgress | None:
        """Progress for a course, if any lesson was completed in it."""
        return self.courses.get(course_id)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "user_id": self.user_id,
            "created_at": self.created_at,
            "enrolled_courses": {
                course_id: progress.to_dict()
                for course_id, progress in sorted(self.courses.items())
            },
        }

    def __repr__(self) -> str:
        return f"<ProgressRecord user={self.user_id} courses={len(self.courses)}>"


@dataclass(frozen=True)
class CompletionResult:
    """Tagged outcome of mark_lesson_complete."""

    status: CompletionStatus
    course_id: str
    lesson_index: int
    progress_percent: int

    @property
    def recorded(self) -> bool:
        """True when this call wrote a new completion."""
        return self.status == CompletionStatus.COMPLETED


# ==============================================================================
# Projections
# ==============================================================================


def percent_for(course_id: str, record: ProgressRecord) -> int:
    """Progress bar value for a course: stored percentage, or 0."""
    progress = record.course(course_id)
    return progress.progress_percent if progress else 0


def resolve_resume_position(
    progress: CourseProgress | None, total_lessons: int
) -> int:
    """Lesson index a returning user should land on.

    Resumes right after the number of completed lessons, clamped to the last
    lesson. This assumes lessons are completed in order: completing lesson 4
    alone resumes at lesson 1, not 5.
    """
    if progress is None or not progress.completed_lessons or total_lessons <= 0:
        return 0
    return min(len(progress.completed_lessons), total_lessons - 1)
