"""Health check endpoints."""

from fastapi import APIRouter, Request

from courseledger.config import get_settings


router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness() -> dict[str, str]:
    """Liveness check - reports if the application is running."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness(request: Request) -> dict[str, str | bool]:
    """Readiness check - reports whether the catalog and ledger are wired up."""
    settings = get_settings()
    state = request.app.state
    catalog_ready = getattr(state, "catalog_service", None) is not None
    ledger_ready = getattr(state, "progress_ledger", None) is not None
    return {
        "status": "ready" if catalog_ready and ledger_ready else "degraded",
        "catalog": catalog_ready,
        "progress_store": ledger_ready,
        "environment": settings.environment,
        "debug": settings.debug,
    }


@router.get("")
async def health() -> dict[str, str]:
    """General health check endpoint."""
    settings = get_settings()
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }
