"""
API Routes package.
"""
from fastapi import APIRouter

from skillgap.api.routes.analyses import router as analyses_router
from skillgap.api.routes.health import router as health_router

# Main API router
api_router = APIRouter()

api_router.include_router(health_router)
api_router.include_router(analyses_router)

__all__ = [
    "api_router",
    "analyses_router",
    "health_router",
]
