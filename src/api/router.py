from __future__ import annotations

from fastapi import APIRouter

from src.api.consistency import router as consistency_router
from src.api.health import router as health_router
from src.api.performance_reports import router as performance_reports_router


api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(performance_reports_router)
api_router.include_router(consistency_router)
