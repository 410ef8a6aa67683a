"""Tests for ProgressLedger.

Covers:
- get_progress / get_or_create_progress
- mark_lesson_complete: idempotency, bounds, unknown courses, retries
- total lesson count policies (snapshot vs live catalog)
- resume position
"""

import pytest
from conftest import InMemoryProgressStore

from courseledger.catalog.models import CourseCatalogEntry, LessonSpec
from courseledger.catalog.service import CatalogService, CourseNotFoundError
from courseledger.core.exceptions import StoreUnavailableError
from courseledger.progress.models import (
    CompletionStatus,
    CourseProgress,
    TotalLessonsPolicy,
)
from courseledger.progress.service import (
    ConcurrentUpdateConflictError,
    InvalidLessonIndexError,
    ProgressLedger,
)


def _catalog_with(course_id: str, lesson_count: int) -> CatalogService:
    return CatalogService(
        [
            CourseCatalogEntry(
                id=course_id,
                title=course_id,
                lessons=[LessonSpec(title=f"L{n}") for n in range(lesson_count)],
            )
        ]
    )


class TestGetProgress:
    """Tests for reading progress records."""

    @pytest.mark.asyncio
    async def test_new_user_gets_empty_record_without_write(
        self, ledger: ProgressLedger, store: InMemoryProgressStore, user_id: str
    ) -> None:
        record = await ledger.get_progress(user_id)

        assert record.user_id == user_id
        assert record.courses == {}
        assert record.is_persisted is False
        assert store.writes == []

    @pytest.mark.asyncio
    async def test_get_or_create_creates_once(
        self, ledger: ProgressLedger, store: InMemoryProgressStore, user_id: str
    ) -> None:
        first = await ledger.get_or_create_progress(user_id)
        second = await ledger.get_or_create_progress(user_id)

        assert first.is_persisted is True
        assert second.created_at == first.created_at
        assert store.writes == [("create_record", user_id, "")]

    @pytest.mark.asyncio
    async def test_round_trip_after_completion(
        self, ledger: ProgressLedger, user_id: str
    ) -> None:
        await ledger.mark_lesson_complete(user_id, "intro-html", 0)
        await ledger.mark_lesson_complete(user_id, "intro-html", 3)

        record = await ledger.get_progress(user_id)

        progress = record.course("intro-html")
        assert progress is not None
        assert progress.sorted_lessons == [0, 3]
        assert progress.total_lessons == 5
        assert progress.progress_percent == 40

    @pytest.mark.asyncio
    async def test_store_unavailable_propagates(
        self, ledger: ProgressLedger, store: InMemoryProgressStore, user_id: str
    ) -> None:
        store.unavailable = True

        with pytest.raises(StoreUnavailableError):
            await ledger.get_progress(user_id)


class TestMarkLessonComplete:
    """Tests for recording lesson completions."""

    @pytest.mark.asyncio
    async def test_first_completion_creates_record_and_course(
        self, ledger: ProgressLedger, store: InMemoryProgressStore, user_id: str
    ) -> None:
        """A user never seen before is initialized on the first completion."""
        result = await ledger.mark_lesson_complete(user_id, "intro-html", 0)

        assert result.status == CompletionStatus.COMPLETED
        assert result.recorded is True
        assert result.progress_percent == 20
        assert store.writes == [
            ("create_record", user_id, ""),
            ("insert_course_progress", user_id, "intro-html"),
        ]

    @pytest.mark.asyncio
    async def test_repeat_completion_is_noop(
        self, ledger: ProgressLedger, store: InMemoryProgressStore, user_id: str
    ) -> None:
        """Lesson 0 -> 20%, lesson 0 again -> 20% with no write, lesson 1 -> 40%."""
        first = await ledger.mark_lesson_complete(user_id, "intro-html", 0)
        writes_after_first = len(store.course_writes())

        again = await ledger.mark_lesson_complete(user_id, "intro-html", 0)

        assert again.status == CompletionStatus.ALREADY_COMPLETED
        assert again.recorded is False
        assert again.progress_percent == first.progress_percent == 20
        assert len(store.course_writes()) == writes_after_first

        second = await ledger.mark_lesson_complete(user_id, "intro-html", 1)
        assert second.progress_percent == 40

    @pytest.mark.asyncio
    async def test_percentage_never_decreases(
        self, ledger: ProgressLedger, user_id: str
    ) -> None:
        percents = []
        for lesson_index in [4, 2, 2, 0, 4, 1, 3]:
            result = await ledger.mark_lesson_complete(
                user_id, "intro-html", lesson_index
            )
            percents.append(result.progress_percent)

        assert percents == sorted(percents)
        assert percents[-1] == 100

    @pytest.mark.asyncio
    async def test_rounding_eight_lessons(
        self, ledger: ProgressLedger, user_id: str
    ) -> None:
        result = await ledger.mark_lesson_complete(user_id, "mastering-css", 7)
        assert result.progress_percent == 13

    @pytest.mark.asyncio
    @pytest.mark.parametrize("lesson_index", [-1, 5, 99])
    async def test_out_of_range_index_rejected(
        self,
        ledger: ProgressLedger,
        store: InMemoryProgressStore,
        user_id: str,
        lesson_index: int,
    ) -> None:
        await ledger.mark_lesson_complete(user_id, "intro-html", 0)
        writes_before = len(store.course_writes())

        with pytest.raises(InvalidLessonIndexError) as exc_info:
            await ledger.mark_lesson_complete(user_id, "intro-html", lesson_index)

        assert exc_info.value.code == "invalid_lesson_index"
        assert exc_info.value.total_lessons == 5
        assert len(store.course_writes()) == writes_before
        record = await ledger.get_progress(user_id)
        assert record.course("intro-html").sorted_lessons == [0]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("lesson_index", [-1, 5])
    async def test_out_of_range_index_on_new_user_writes_nothing(
        self,
        ledger: ProgressLedger,
        store: InMemoryProgressStore,
        user_id: str,
        lesson_index: int,
    ) -> None:
        """A rejected lesson does not create the user's record either."""
        with pytest.raises(InvalidLessonIndexError):
            await ledger.mark_lesson_complete(user_id, "intro-html", lesson_index)

        assert store.writes == []
        assert (await ledger.get_progress(user_id)).is_persisted is False

    @pytest.mark.asyncio
    async def test_repeat_completion_writes_nothing(
        self, ledger: ProgressLedger, store: InMemoryProgressStore, user_id: str
    ) -> None:
        await ledger.mark_lesson_complete(user_id, "intro-html", 0)
        writes_before = list(store.writes)

        await ledger.mark_lesson_complete(user_id, "intro-html", 0)

        assert store.writes == writes_before

    @pytest.mark.asyncio
    async def test_course_without_lessons_rejects_every_index(
        self, ledger: ProgressLedger, store: InMemoryProgressStore, user_id: str
    ) -> None:
        with pytest.raises(InvalidLessonIndexError) as exc_info:
            await ledger.mark_lesson_complete(user_id, "coming-soon", 0)

        assert "no lessons" in exc_info.value.message
        assert store.writes == []

    @pytest.mark.asyncio
    async def test_unknown_course_returns_prior_percent(
        self, ledger: ProgressLedger, store: InMemoryProgressStore, user_id: str
    ) -> None:
        """No record is created and nothing is written for an unknown course."""
        result = await ledger.mark_lesson_complete(user_id, "quantum-basket", 0)

        assert result.status == CompletionStatus.COURSE_NOT_FOUND
        assert result.recorded is False
        assert result.progress_percent == 0
        assert store.writes == []

    @pytest.mark.asyncio
    async def test_unknown_course_keeps_previously_stored_percent(
        self, store: InMemoryProgressStore, user_id: str
    ) -> None:
        """A course removed from the catalog still reports its stored value."""
        store.seed(
            CourseProgress(
                user_id,
                "retired-course",
                {0, 1},
                total_lessons=4,
                progress_percent=50,
                version=2,
            )
        )
        ledger = ProgressLedger(store, _catalog_with("intro-html", 5))

        result = await ledger.mark_lesson_complete(user_id, "retired-course", 2)

        assert result.status == CompletionStatus.COURSE_NOT_FOUND
        assert result.progress_percent == 50
        assert store.writes == []

    @pytest.mark.asyncio
    async def test_courses_are_tracked_independently(
        self, ledger: ProgressLedger, user_id: str
    ) -> None:
        await ledger.mark_lesson_complete(user_id, "intro-html", 0)
        await ledger.mark_lesson_complete(user_id, "mastering-css", 0)

        record = await ledger.get_progress(user_id)

        assert record.course("intro-html").progress_percent == 20
        assert record.course("mastering-css").progress_percent == 13

    @pytest.mark.asyncio
    async def test_retries_after_conflict(
        self, ledger: ProgressLedger, store: InMemoryProgressStore, user_id: str
    ) -> None:
        store.forced_conflicts = 2

        result = await ledger.mark_lesson_complete(user_id, "intro-html", 0)

        assert result.status == CompletionStatus.COMPLETED
        assert store.conflicts == 2

    @pytest.mark.asyncio
    async def test_conflict_exhaustion_raises(
        self, store: InMemoryProgressStore, catalog: CatalogService, user_id: str
    ) -> None:
        ledger = ProgressLedger(store, catalog, max_update_retries=2)
        store.forced_conflicts = 2

        with pytest.raises(ConcurrentUpdateConflictError) as exc_info:
            await ledger.mark_lesson_complete(user_id, "intro-html", 0)

        assert exc_info.value.attempts == 2
        assert exc_info.value.code == "concurrent_update_conflict"
        assert store.course_writes() == []

    @pytest.mark.asyncio
    async def test_store_failure_commits_nothing(
        self, ledger: ProgressLedger, store: InMemoryProgressStore, user_id: str
    ) -> None:
        await ledger.mark_lesson_complete(user_id, "intro-html", 0)
        store.fail_writes = True

        with pytest.raises(StoreUnavailableError):
            await ledger.mark_lesson_complete(user_id, "intro-html", 1)

        store.fail_writes = False
        record = await ledger.get_progress(user_id)
        assert record.course("intro-html").sorted_lessons == [0]
        assert record.course("intro-html").progress_percent == 20

    def test_rejects_zero_retries(
        self, store: InMemoryProgressStore, catalog: CatalogService
    ) -> None:
        with pytest.raises(ValueError, match="max_update_retries"):
            ProgressLedger(store, catalog, max_update_retries=0)


class TestTotalLessonsPolicy:
    """Catalog lesson count changing after the first completion."""

    @pytest.mark.asyncio
    async def test_snapshot_keeps_first_seen_count(
        self, store: InMemoryProgressStore, user_id: str
    ) -> None:
        original = ProgressLedger(store, _catalog_with("intro-html", 5))
        await original.mark_lesson_complete(user_id, "intro-html", 0)

        grown = ProgressLedger(store, _catalog_with("intro-html", 10))
        result = await grown.mark_lesson_complete(user_id, "intro-html", 1)

        assert result.progress_percent == 40
        progress = (await grown.get_progress(user_id)).course("intro-html")
        assert progress.total_lessons == 5

    @pytest.mark.asyncio
    async def test_snapshot_bounds_use_stored_count(
        self, store: InMemoryProgressStore, user_id: str
    ) -> None:
        original = ProgressLedger(store, _catalog_with("intro-html", 5))
        await original.mark_lesson_complete(user_id, "intro-html", 0)

        grown = ProgressLedger(store, _catalog_with("intro-html", 10))
        with pytest.raises(InvalidLessonIndexError):
            await grown.mark_lesson_complete(user_id, "intro-html", 7)

    @pytest.mark.asyncio
    async def test_live_follows_catalog(
        self, store: InMemoryProgressStore, user_id: str
    ) -> None:
        original = ProgressLedger(store, _catalog_with("intro-html", 5))
        await original.mark_lesson_complete(user_id, "intro-html", 0)

        grown = ProgressLedger(
            store,
            _catalog_with("intro-html", 10),
            total_lessons_policy=TotalLessonsPolicy.LIVE,
        )
        result = await grown.mark_lesson_complete(user_id, "intro-html", 7)

        assert result.progress_percent == 20
        progress = (await grown.get_progress(user_id)).course("intro-html")
        assert progress.total_lessons == 10

    @pytest.mark.asyncio
    async def test_live_shrink_ignores_removed_lessons(
        self, store: InMemoryProgressStore, user_id: str
    ) -> None:
        store.seed(
            CourseProgress(
                user_id,
                "intro-html",
                {0, 6, 7},
                total_lessons=8,
                progress_percent=38,
                version=3,
            )
        )
        shrunk = ProgressLedger(
            store,
            _catalog_with("intro-html", 4),
            total_lessons_policy="live",
        )

        result = await shrunk.mark_lesson_complete(user_id, "intro-html", 1)

        assert result.progress_percent == 50


class TestResumePosition:
    """Tests for resolving where a returning user lands."""

    def test_static_resolver(self) -> None:
        progress = CourseProgress("u1", "intro-html", {0, 1}, total_lessons=5)
        assert ProgressLedger.resolve_resume_position(progress, 5) == 2
        assert ProgressLedger.resolve_resume_position(None, 5) == 0

    @pytest.mark.asyncio
    async def test_resume_after_two_lessons(
        self, ledger: ProgressLedger, user_id: str
    ) -> None:
        await ledger.mark_lesson_complete(user_id, "intro-html", 0)
        await ledger.mark_lesson_complete(user_id, "intro-html", 1)

        course, progress, lesson_index = await ledger.get_resume_position(
            user_id, "intro-html"
        )

        assert course.id == "intro-html"
        assert progress is not None
        assert lesson_index == 2

    @pytest.mark.asyncio
    async def test_resume_finished_course_stays_on_last_lesson(
        self, ledger: ProgressLedger, user_id: str
    ) -> None:
        for lesson_index in range(5):
            await ledger.mark_lesson_complete(user_id, "intro-html", lesson_index)

        _, _, lesson_index = await ledger.get_resume_position(user_id, "intro-html")

        assert lesson_index == 4

    @pytest.mark.asyncio
    async def test_resume_untouched_course(
        self, ledger: ProgressLedger, store: InMemoryProgressStore, user_id: str
    ) -> None:
        _, progress, lesson_index = await ledger.get_resume_position(
            user_id, "mastering-css"
        )

        assert progress is None
        assert lesson_index == 0
        assert store.writes == []

    @pytest.mark.asyncio
    async def test_resume_unknown_course(
        self, ledger: ProgressLedger, user_id: str
    ) -> None:
        with pytest.raises(CourseNotFoundError):
            await ledger.get_resume_position(user_id, "quantum-basket")
