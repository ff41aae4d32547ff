"""
Repository layer - data access abstraction.

Repositories handle all database queries, keeping SQL/ORM logic
out of the service, worker and route layers.
"""
from skillgap.repositories.base import BaseRepository
from skillgap.repositories.analysis_repository import AnalysisRepository
from skillgap.repositories.anonymous_user_repository import AnonymousUserRepository

__all__ = [
    "BaseRepository",
    "AnalysisRepository",
    "AnonymousUserRepository",
]
