"""Progress ledger service layer.

Business logic for:
- Reading a user's progress record (pure read and get-or-create)
- Marking lessons complete with idempotency and bounds checks
- Resolving where a returning user resumes a course

Concurrency: the read-modify-write in mark_lesson_complete is protected by
versioned conditional writes. When another session of the same user wins
the race, the ledger re-reads and re-applies its lesson on top of the
winner's state, so both completions survive.
"""

import structlog

from courseledger.catalog.models import CourseCatalogEntry
from courseledger.catalog.service import CatalogService
from courseledger.core.exceptions import AppError

from .models import (
    CompletionResult,
    CompletionStatus,
    CourseProgress,
    ProgressRecord,
    TotalLessonsPolicy,
    percent_for,
    resolve_resume_position,
)
from .store import ProgressStore


logger = structlog.get_logger(__name__)

DEFAULT_MAX_UPDATE_RETRIES = 3


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class ProgressError(AppError):
    """Base progress error."""

    def __init__(self, message: str, code: str = "progress_error"):
        super().__init__(message, code)


class InvalidLessonIndexError(ProgressError):
    """Lesson index outside [0, total_lessons)."""

    def __init__(self, course_id: str, lesson_index: int, total_lessons: int):
        self.course_id = course_id
        self.lesson_index = lesson_index
        self.total_lessons = total_lessons
        if total_lessons > 0:
            valid = f"valid lessons are 0 to {total_lessons - 1}"
        else:
            valid = "the course has no lessons"
        super().__init__(
            f"Lesson {lesson_index} does not exist in course '{course_id}' ({valid})",
            "invalid_lesson_index",
        )


class ConcurrentUpdateConflictError(ProgressError):
    """Progress kept changing underneath us; the lesson was not recorded."""

    def __init__(self, course_id: str, attempts: int):
        self.course_id = course_id
        self.attempts = attempts
        super().__init__(
            "Your progress was updated from another session at the same time. "
            "Please try again.",
            "concurrent_update_conflict",
        )


# ==============================================================================
# Progress Ledger
# ==============================================================================


class ProgressLedger:
    """Owns the mapping (user, course) -> completion state."""

    def __init__(
        self,
        store: ProgressStore,
        catalog: CatalogService,
        max_update_retries: int = DEFAULT_MAX_UPDATE_RETRIES,
        total_lessons_policy: TotalLessonsPolicy = TotalLessonsPolicy.SNAPSHOT,
    ):
        if max_update_retries < 1:
            msg = "max_update_retries must be at least 1"
            raise ValueError(msg)
        self.store = store
        self.catalog = catalog
        self.max_update_retries = max_update_retries
        self.total_lessons_policy = TotalLessonsPolicy(total_lessons_policy)

    # ==========================================================================
    # Record Queries
    # ==========================================================================

    async def get_progress(self, user_id: str) -> ProgressRecord:
        """Stored progress for user_id, or an empty unsaved record.

        Never writes.

        Raises:
            StoreUnavailableError: If the store cannot be reached
        """
        record = await self.store.fetch_record(user_id)
        return record if record is not None else ProgressRecord.empty(user_id)

    async def get_or_create_progress(self, user_id: str) -> ProgressRecord:
        """Stored progress for user_id, creating an empty record if absent.

        Raises:
            StoreUnavailableError: If the store cannot be reached
        """
        record = await self.store.fetch_record(user_id)
        if record is not None and record.is_persisted:
            return record

        await self._create_record(user_id)

        # Another session may have created it (and written courses) meanwhile
        record = await self.store.fetch_record(user_id)
        return record if record is not None else ProgressRecord.empty(user_id)

    async def _create_record(self, user_id: str) -> None:
        if await self.store.create_record(user_id):
            logger.info("progress_record_created", user_id=user_id)

    # ==========================================================================
    # Lesson Completion
    # ==========================================================================

    async def mark_lesson_complete(
        self,
        user_id: str,
        course_id: str,
        lesson_index: int,
    ) -> CompletionResult:
        """Record lesson_index of course_id as completed for user_id.

        Returns:
            CompletionResult tagged COMPLETED (one write), ALREADY_COMPLETED
            (no write) or COURSE_NOT_FOUND (nothing read or written beyond
            the prior percentage)

        Raises:
            InvalidLessonIndexError: If lesson_index is outside the course
            ConcurrentUpdateConflictError: If every conditional write lost a race
            StoreUnavailableError: If the store cannot be reached; nothing is
                committed in that case

        Nothing is written (not even the record header) unless the lesson is
        newly completed.
        """
        course = await self.catalog.find_course(course_id)
        if course is None:
            return await self._course_not_found(user_id, course_id, lesson_index)

        record = await self.get_progress(user_id)
        record_exists = record.is_persisted
        current = record.course(course_id)

        for attempt in range(1, self.max_update_retries + 1):
            if current is None:
                current = CourseProgress.start(
                    user_id, course_id, total_lessons=course.total_lessons
                )

            total_lessons = self._effective_total_lessons(current, course)
            if not 0 <= lesson_index < total_lessons:
                raise InvalidLessonIndexError(course_id, lesson_index, total_lessons)

            if lesson_index in current.completed_lessons:
                logger.debug(
                    "lesson_already_completed",
                    user_id=user_id,
                    course_id=course_id,
                    lesson_index=lesson_index,
                )
                return CompletionResult(
                    status=CompletionStatus.ALREADY_COMPLETED,
                    course_id=course_id,
                    lesson_index=lesson_index,
                    progress_percent=current.progress_percent,
                )

            if not record_exists:
                await self._create_record(user_id)
                record_exists = True

            updated = current.with_completed_lesson(lesson_index, total_lessons)
            if current.is_persisted:
                applied = await self.store.update_course_progress(
                    updated, expected_version=current.version
                )
            else:
                applied = await self.store.insert_course_progress(updated)

            if applied:
                logger.info(
                    "lesson_marked_complete",
                    user_id=user_id,
                    course_id=course_id,
                    lesson_index=lesson_index,
                    progress_percent=updated.progress_percent,
                    version=updated.version,
                )
                return CompletionResult(
                    status=CompletionStatus.COMPLETED,
                    course_id=course_id,
                    lesson_index=lesson_index,
                    progress_percent=updated.progress_percent,
                )

            logger.warning(
                "progress_update_conflict",
                user_id=user_id,
                course_id=course_id,
                lesson_index=lesson_index,
                attempt=attempt,
                expected_version=current.version,
            )
            current = await self.store.fetch_course_progress(user_id, course_id)

        logger.error(
            "progress_update_conflict_exhausted",
            user_id=user_id,
            course_id=course_id,
            lesson_index=lesson_index,
            attempts=self.max_update_retries,
        )
        raise ConcurrentUpdateConflictError(course_id, self.max_update_retries)

    async def _course_not_found(
        self, user_id: str, course_id: str, lesson_index: int
    ) -> CompletionResult:
        logger.warning(
            "lesson_completion_unknown_course",
            user_id=user_id,
            course_id=course_id,
            lesson_index=lesson_index,
        )
        prior = await self.get_progress(user_id)
        return CompletionResult(
            status=CompletionStatus.COURSE_NOT_FOUND,
            course_id=course_id,
            lesson_index=lesson_index,
            progress_percent=percent_for(course_id, prior),
        )

    def _effective_total_lessons(
        self, progress: CourseProgress, course: CourseCatalogEntry
    ) -> int:
        if self.total_lessons_policy == TotalLessonsPolicy.LIVE:
            return course.total_lessons
        return progress.total_lessons

    # ==========================================================================
    # Resume Position
    # ==========================================================================

    @staticmethod
    def resolve_resume_position(
        progress: CourseProgress | None, total_lessons: int
    ) -> int:
        """Lesson index to resume at; see models.resolve_resume_position."""
        return resolve_resume_position(progress, total_lessons)

    async def get_resume_position(
        self, user_id: str, course_id: str
    ) -> tuple[CourseCatalogEntry, CourseProgress | None, int]:
        """Resume position of user_id in course_id against the live catalog.

        Returns:
            Tuple of (course, progress or None, lesson_index)

        Raises:
            CourseNotFoundError: If the course is not in the catalog
            StoreUnavailableError: If the store cannot be reached
        """
        course = await self.catalog.get_course(course_id)
        record = await self.get_progress(user_id)
        progress = record.course(course_id)
        return (
            course,
            progress,
            resolve_resume_position(progress, course.total_lessons),
        )
