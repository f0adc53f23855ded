"""API routers package."""

from src.api.routers.assessments import router as assessment_router
from src.api.routers.health import router as health_router

__all__ = [
    "assessment_router",
    "health_router",
]
