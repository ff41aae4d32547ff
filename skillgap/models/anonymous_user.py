"""
AnonymousUser model - maps a session cookie to an owner id.

Upserted on every submission: created on first sighting, otherwise
last_seen_at is bumped.
"""
from datetime import datetime
from typing import TYPE_CHECKING, List

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from skillgap.models.base import BaseModel, utcnow

if TYPE_CHECKING:
    from skillgap.models.analysis import Analysis


class AnonymousUser(BaseModel):
    __tablename__ = "anonymous_users"

    session_id: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True, index=True
    )
    last_seen_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    analyses: Mapped[List["Analysis"]] = relationship(
        "Analysis", back_populates="owner"
    )

    def __repr__(self) -> str:
        return f"<AnonymousUser {self.id} session={self.session_id[:8]}>"
