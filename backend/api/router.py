from __future__ import annotations

from fastapi import APIRouter

from api.routes import class_series, class_sessions, scheduling_config


api_router = APIRouter()
api_router.include_router(class_sessions.router, prefix="/class-sessions", tags=["class-sessions"])
api_router.include_router(class_series.router, prefix="/class-series", tags=["class-series"])
api_router.include_router(scheduling_config.router, prefix="/scheduling-config", tags=["scheduling-config"])
