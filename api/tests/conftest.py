"""Shared fixtures for CourseLedger tests."""

import asyncio
import os
from datetime import UTC, datetime


# Settings are cached on first use; configure the test environment before
# anything imports courseledger.config.
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("LOG_FILE_ENABLED", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("LOG_INCLUDE_CALLER_INFO", "false")

import pytest  # noqa: E402

from courseledger.catalog.models import CourseCatalogEntry, LessonSpec  # noqa: E402
from courseledger.catalog.service import CatalogService  # noqa: E402
from courseledger.core.exceptions import StoreUnavailableError  # noqa: E402
from courseledger.progress.models import CourseProgress, ProgressRecord  # noqa: E402
from courseledger.progress.service import ProgressLedger  # noqa: E402


class InMemoryProgressStore:
    """ProgressStore keeping rows in dicts, with the same conditional-write
    semantics as the Cassandra store.

    Every call yields to the event loop once (after reading or writing), so
    concurrent ledger calls interleave the way two sessions hitting a
    shared store would.

    Knobs:
        unavailable: every call raises StoreUnavailableError
        fail_writes: course progress writes raise StoreUnavailableError
        forced_conflicts: next N conditional writes report "not applied"
    """

    def __init__(self) -> None:
        self.records: dict[str, datetime] = {}
        self.rows: dict[tuple[str, str], CourseProgress] = {}
        self.writes: list[tuple[str, str, str]] = []
        self.conflicts = 0
        self.unavailable = False
        self.fail_writes = False
        self.forced_conflicts = 0

    def _check_available(self) -> None:
        if self.unavailable:
            raise StoreUnavailableError

    def _check_writable(self) -> None:
        self._check_available()
        if self.fail_writes:
            raise StoreUnavailableError

    def seed(self, progress: CourseProgress) -> None:
        """Store a row directly (test setup, not counted as a write)."""
        self.records.setdefault(progress.user_id, datetime.now(UTC))
        self.rows[(progress.user_id, progress.course_id)] = progress

    async def fetch_record(self, user_id: str) -> ProgressRecord | None:
        self._check_available()
        created_at = self.records.get(user_id)
        courses = {
            course_id: progress
            for (owner, course_id), progress in self.rows.items()
            if owner == user_id
        }
        await asyncio.sleep(0)
        if created_at is None and not courses:
            return None
        return ProgressRecord(user_id=user_id, courses=courses, created_at=created_at)

    async def create_record(self, user_id: str) -> bool:
        self._check_available()
        applied = user_id not in self.records
        if applied:
            self.records[user_id] = datetime.now(UTC)
            self.writes.append(("create_record", user_id, ""))
        await asyncio.sleep(0)
        return applied

    async def fetch_course_progress(
        self, user_id: str, course_id: str
    ) -> CourseProgress | None:
        self._check_available()
        progress = self.rows.get((user_id, course_id))
        await asyncio.sleep(0)
        return progress

    def _take_forced_conflict(self) -> bool:
        if self.forced_conflicts > 0:
            self.forced_conflicts -= 1
            self.conflicts += 1
            return True
        return False

    async def insert_course_progress(self, progress: CourseProgress) -> bool:
        self._check_writable()
        key = (progress.user_id, progress.course_id)
        if self._take_forced_conflict() or key in self.rows:
            if key in self.rows:
                self.conflicts += 1
            await asyncio.sleep(0)
            return False
        self.rows[key] = progress
        self.writes.append(("insert_course_progress", *key))
        await asyncio.sleep(0)
        return True

    async def update_course_progress(
        self, progress: CourseProgress, expected_version: int
    ) -> bool:
        self._check_writable()
        key = (progress.user_id, progress.course_id)
        stored = self.rows.get(key)
        if self._take_forced_conflict():
            await asyncio.sleep(0)
            return False
        if stored is None or stored.version != expected_version:
            self.conflicts += 1
            await asyncio.sleep(0)
            return False
        self.rows[key] = progress
        self.writes.append(("update_course_progress", *key))
        await asyncio.sleep(0)
        return True

    def course_writes(self) -> list[tuple[str, str, str]]:
        """Writes to course progress rows (record creation excluded)."""
        return [w for w in self.writes if w[0] != "create_record"]


@pytest.fixture
def catalog() -> CatalogService:
    """Catalog with a 5-lesson course, an 8-lesson course and an empty one."""
    return CatalogService(
        [
            CourseCatalogEntry(
                id="intro-html",
                title="Introduction to HTML",
                lessons=[
                    LessonSpec(title=f"HTML lesson {n}", media_ref=f"html/{n}.mp4")
                    for n in range(5)
                ],
            ),
            CourseCatalogEntry(
                id="mastering-css",
                title="Mastering CSS",
                lessons=[LessonSpec(title=f"CSS lesson {n}") for n in range(8)],
            ),
            CourseCatalogEntry(id="coming-soon", title="Coming Soon"),
        ]
    )


@pytest.fixture
def store() -> InMemoryProgressStore:
    """Empty in-memory progress store."""
    return InMemoryProgressStore()


@pytest.fixture
def ledger(store: InMemoryProgressStore, catalog: CatalogService) -> ProgressLedger:
    """Ledger with the default snapshot policy."""
    return ProgressLedger(store=store, catalog=catalog)


@pytest.fixture
def user_id() -> str:
    """Opaque user id as issued by the identity provider."""
    return "uid-3f9c2a"


@pytest.fixture
def client(catalog: CatalogService, ledger: ProgressLedger):
    """Test client wired to the in-memory ledger.

    The lifespan is not run (no `with` block), so no Cassandra connection is
    attempted; services are placed on app.state directly.
    """
    from fastapi.testclient import TestClient

    from courseledger.main import app

    app.state.catalog_service = catalog
    app.state.progress_ledger = ledger
    yield TestClient(app)
    del app.state.catalog_service
    del app.state.progress_ledger


@pytest.fixture
def auth_headers(user_id: str) -> dict[str, str]:
    """Authorization header carrying a valid token for user_id."""
    from courseledger.auth.security import create_access_token

    return {"Authorization": f"Bearer {create_access_token(user_id)}"}
