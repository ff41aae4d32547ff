"""
Database models for Skill Gap.

All models use UUID primary keys and include created_at/updated_at timestamps.
"""
from skillgap.models.base import BaseModel, TimestampMixin, UUIDMixin
from skillgap.models.anonymous_user import AnonymousUser
from skillgap.models.analysis import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    Analysis,
    AnalysisStatus,
)

__all__ = [
    "BaseModel",
    "TimestampMixin",
    "UUIDMixin",
    "AnonymousUser",
    "Analysis",
    "AnalysisStatus",
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
]
