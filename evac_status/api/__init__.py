"""
API package for the evacuation status backend.

This package aggregates all API routers to be included in the FastAPI
application. The API is versioned under ``/api/v1``.
"""

from fastapi import APIRouter

from .v1.evacuation import router as evacuation_router
from .v1.health import router as health_router

api_router = APIRouter()
api_router.include_router(evacuation_router)
api_router.include_router(health_router)
