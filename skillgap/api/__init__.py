"""
API package.
"""
from skillgap.api.routes import api_router
from skillgap.api.deps import (
    get_analysis_id,
    get_analysis_service,
    get_db,
    get_session_id,
)

__all__ = [
    "api_router",
    "get_analysis_id",
    "get_analysis_service",
    "get_db",
    "get_session_id",
]
