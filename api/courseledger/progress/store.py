"""Durable record store for progress.

ProgressStore is the contract the ledger depends on. Writes are
conditional: they report whether they were applied instead of silently
overwriting, which is what lets the ledger detect a concurrent writer and
retry.

CassandraProgressStore implements it with lightweight transactions
(IF NOT EXISTS / IF version = ?).
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol

import structlog
from cassandra import ConsistencyLevel, DriverException
from cassandra.cluster import NoHostAvailable

from courseledger.core.exceptions import StoreUnavailableError

from .models import CourseProgress, ProgressRecord


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)

# Errors that mean the store could not be reached or did not answer in time
_STORE_ERRORS = (DriverException, NoHostAvailable, ConnectionError)

# Reads and conditional writes both reach a quorum of local replicas, so a
# read always sees the latest applied write. The re-read after a lost race
# goes through Paxos (LOCAL_SERIAL) to also see in-flight transactions.
READ_CONSISTENCY = ConsistencyLevel.LOCAL_QUORUM
WRITE_CONSISTENCY = ConsistencyLevel.LOCAL_QUORUM
SERIAL_CONSISTENCY = ConsistencyLevel.LOCAL_SERIAL


class ProgressStore(Protocol):
    """Contract for persisting progress records."""

    async def fetch_record(self, user_id: str) -> ProgressRecord | None:
        """Stored record with all course progress, or None if absent."""
        ...

    async def create_record(self, user_id: str) -> bool:
        """Create an empty record. False if one already exists."""
        ...

    async def fetch_course_progress(
        self, user_id: str, course_id: str
    ) -> CourseProgress | None:
        """Stored progress for one course, or None if absent."""
        ...

    async def insert_course_progress(self, progress: CourseProgress) -> bool:
        """Store new course progress. False if a row already exists."""
        ...

    async def update_course_progress(
        self, progress: CourseProgress, expected_version: int
    ) -> bool:
        """Replace course progress. False if the stored version changed."""
        ...


class CassandraProgressStore:
    """ProgressStore backed by Cassandra lightweight transactions."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_record = self.session.prepare(f"""
            SELECT user_id, created_at FROM {self.keyspace}.progress_records
            WHERE user_id = ?
        """)

        self._insert_record = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.progress_records (user_id, created_at)
            VALUES (?, ?)
            IF NOT EXISTS
        """)

        self._get_user_course_progress = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.course_progress
            WHERE user_id = ?
        """)

        self._get_course_progress = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.course_progress
            WHERE user_id = ? AND course_id = ?
        """)

        self._insert_course_progress = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.course_progress
            (user_id, course_id, completed_lessons, total_lessons,
             progress_percent, version, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        # Set, total and percentage always change together in one statement
        self._update_course_progress = self.session.prepare(f"""
            UPDATE {self.keyspace}.course_progress
            SET completed_lessons = ?, total_lessons = ?, progress_percent = ?,
                version = ?, updated_at = ?
            WHERE user_id = ? AND course_id = ?
            IF version = ?
        """)

        self._get_record.consistency_level = READ_CONSISTENCY
        self._get_user_course_progress.consistency_level = READ_CONSISTENCY
        self._get_course_progress.consistency_level = SERIAL_CONSISTENCY

        for statement in (
            self._insert_record,
            self._insert_course_progress,
            self._update_course_progress,
        ):
            statement.consistency_level = WRITE_CONSISTENCY
            statement.serial_consistency_level = SERIAL_CONSISTENCY

    async def _execute(self, statement: Any, params: list[Any], operation: str) -> Any:
        """Run a statement, translating driver failures to StoreUnavailableError."""
        try:
            return await self.session.aexecute(statement, params)
        except _STORE_ERRORS as e:
            logger.error(
                "progress_store_unavailable",
                operation=operation,
                error_type=type(e).__name__,
                error=str(e),
            )
            raise StoreUnavailableError from e

    async def fetch_record(self, user_id: str) -> ProgressRecord | None:
        result = await self._execute(self._get_record, [user_id], "fetch_record")
        header = result.one()

        rows = await self._execute(
            self._get_user_course_progress, [user_id], "fetch_record"
        )
        courses = {row.course_id: CourseProgress.from_row(row) for row in rows}

        if header is None and not courses:
            return None

        return ProgressRecord(
            user_id=user_id,
            courses=courses,
            created_at=header.created_at if header else None,
        )

    async def create_record(self, user_id: str) -> bool:
        result = await self._execute(
            self._insert_record,
            [user_id, datetime.now(UTC)],
            "create_record",
        )
        return bool(result.was_applied)

    async def fetch_course_progress(
        self, user_id: str, course_id: str
    ) -> CourseProgress | None:
        result = await self._execute(
            self._get_course_progress,
            [user_id, course_id],
            "fetch_course_progress",
        )
        row = result.one()
        return CourseProgress.from_row(row) if row else None

    async def insert_course_progress(self, progress: CourseProgress) -> bool:
        result = await self._execute(
            self._insert_course_progress,
            [
                progress.user_id,
                progress.course_id,
                set(progress.completed_lessons),
                progress.total_lessons,
                progress.progress_percent,
                progress.version,
                progress.updated_at,
            ],
            "insert_course_progress",
        )
        return bool(result.was_applied)

    async def update_course_progress(
        self, progress: CourseProgress, expected_version: int
    ) -> bool:
        result = await self._execute(
            self._update_course_progress,
            [
                set(progress.completed_lessons),
                progress.total_lessons,
                progress.progress_percent,
                progress.version,
                progress.updated_at,
                progress.user_id,
                progress.course_id,
                expected_version,
            ],
            "update_course_progress",
        )
        return bool(result.was_applied)
