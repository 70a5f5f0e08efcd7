from typing import Any

from fastapi import APIRouter, Depends

from app.api.deps import get_container
from app.core.container import AppContainer

router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/ready")
async def readiness(container: AppContainer = Depends(get_container)) -> dict[str, Any]:
    settings = container.settings
    catalogue_configured = bool(settings.tmdb_api_key or settings.tmdb_access_token)
    return {
        "status": "ok" if catalogue_configured else "degraded",
        "catalogue_configured": catalogue_configured,
        "generative_fallback": settings.enable_generative_fallback and container.fallback_client.available,
        "cached_queries": len(container.result_cache),
    }
