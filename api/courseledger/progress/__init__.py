"""Lesson progress tracking module.

Provides:
- Per-user progress records with per-course completion sets
- Idempotent, bounds-checked lesson completion
- Conflict-safe writes for concurrent sessions of the same user
- Resume position and progress bar projections
"""

from .models import (
    PROGRESS_TABLES_CQL,
    CompletionResult,
    CompletionStatus,
    CourseProgress,
    LessonState,
    ProgressRecord,
    TotalLessonsPolicy,
    calculate_progress_percent,
    percent_for,
    resolve_resume_position,
)


__all__ = [
    "PROGRESS_TABLES_CQL",
    "CompletionResult",
    "CompletionStatus",
    "CourseProgress",
    "LessonState",
    "ProgressRecord",
    "TotalLessonsPolicy",
    "calculate_progress_percent",
    "percent_for",
    "resolve_resume_position",
]
