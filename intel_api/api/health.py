"""Liveness, readiness and build info endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from intel_api.core.config import Settings, get_settings
from intel_api.core.feature_flags import enabled_features
from intel_api.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _load_settings() -> Settings | None:
    try:
        return get_settings()
    except Exception as e:
        logger.warning(f"Configuration check failed: {e}")
        return None


def _database_reachable() -> bool:
    try:
        from intel_api.db.supabase_client import get_supabase

        get_supabase().table("orgs").select("id").limit(1).execute()
        return True
    except Exception as e:
        logger.warning(f"Database check failed: {e}")
        return False


@router.get("/live")
async def live() -> dict:
    """Process is up. Never touches configuration or the database."""
    return {"alive": True, "timestamp": _now()}


@router.get("/ready")
async def ready() -> JSONResponse:
    """
    Ready to serve traffic: configuration loads and the database answers.

    Returns 503 with the same body shape when any check fails.
    """
    settings = _load_settings()
    checks = {"config": settings is not None, "database": False}
    if settings is not None:
        checks["database"] = _database_reachable()

    is_ready = all(checks.values())
    body = {
        "ready": is_ready,
        "version": settings.APP_VERSION if settings else None,
        "timestamp": _now(),
        "checks": checks,
    }
    return JSONResponse(
        content=body,
        status_code=status.HTTP_200_OK if is_ready else status.HTTP_503_SERVICE_UNAVAILABLE,
    )


@router.get("/info")
async def info() -> dict:
    settings = _load_settings()
    return {
        "app": settings.APP_NAME if settings else "Pravado API",
        "environment": settings.APP_ENV if settings else "unknown",
        "version": settings.APP_VERSION if settings else None,
        "features": enabled_features(),
        "timestamp": _now(),
    }
