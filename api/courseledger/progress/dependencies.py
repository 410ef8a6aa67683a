"""FastAPI dependencies for progress tracking.

Provides dependency injection for:
- Progress ledger
- Error handlers
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from courseledger.core.exceptions import AppError

from .service import ProgressLedger


async def get_progress_ledger(request: Request) -> ProgressLedger:
    """Get progress ledger from app state."""
    ledger = getattr(request.app.state, "progress_ledger", None)
    if ledger is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Progress tracking is not available. Please try again shortly.",
        )
    return ledger


ProgressLedgerDep = Annotated[ProgressLedger, Depends(get_progress_ledger)]


def handle_progress_error(error: AppError) -> HTTPException:
    """Convert ledger errors to HTTP exceptions.

    Store failures (retryable) and invalid lesson references (not retryable)
    map to distinct status codes.
    """
    status_map = {
        "store_unavailable": status.HTTP_503_SERVICE_UNAVAILABLE,
        "course_not_found": status.HTTP_404_NOT_FOUND,
        "invalid_lesson_index": status.HTTP_400_BAD_REQUEST,
        "concurrent_update_conflict": status.HTTP_409_CONFLICT,
    }

    status_code = status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    return HTTPException(
        status_code=status_code,
        detail=error.message,
    )
