from __future__ import annotations

from fastapi import APIRouter, Depends

from app.core.config import Settings
from app.routers.deps import get_app_settings

router = APIRouter(tags=["health"])


@router.get("/health", summary="Liveness check")
async def health(settings: Settings = Depends(get_app_settings)):
    return {"status": "ok", "version": settings.version}
