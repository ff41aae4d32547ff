"""
Analysis model - one row per gap-analysis request.

Status state machine:
  PENDING → PROCESSING → COMPLETED
                       ↘ FAILED

COMPLETED and FAILED are terminal: repository updates refuse to touch a
terminal row. result is set iff COMPLETED, error_message iff FAILED.

content_hash is deliberately not unique: resubmitting after a failure creates
a new row with the same hash. Lookups pick the latest COMPLETED row.
"""
import enum
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from skillgap.models.base import BaseModel, JSONDocument

if TYPE_CHECKING:
    from skillgap.models.anonymous_user import AnonymousUser


class AnalysisStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


TERMINAL_STATUSES = (AnalysisStatus.COMPLETED.value, AnalysisStatus.FAILED.value)
ACTIVE_STATUSES = (AnalysisStatus.PENDING.value, AnalysisStatus.PROCESSING.value)


class Analysis(BaseModel):
    __tablename__ = "analyses"

    # Owner (anonymous session); nullable for system submissions
    anonymous_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("anonymous_users.id", ondelete="SET NULL"),
        nullable=True,
    )

    # SHA-256 hex fingerprint of (resume_text, job_description)
    content_hash: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # Raw inputs, kept for audit and reprocessing
    resume_text: Mapped[str] = mapped_column(Text, nullable=False)
    job_description: Mapped[str] = mapped_column(Text, nullable=False)
    resume_filename: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=AnalysisStatus.PENDING.value,
    )
    result: Mapped[Optional[dict]] = mapped_column(JSONDocument, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    processing_time_ms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    owner: Mapped[Optional["AnonymousUser"]] = relationship(
        "AnonymousUser", back_populates="analyses"
    )

    __table_args__ = (
        # Fast cache-miss fallthrough: "latest COMPLETED row for this hash"
        Index("ix_analyses_hash_status", "content_hash", "status"),
        # History listing per owner, newest first
        Index("ix_analyses_owner_created", "anonymous_user_id", "created_at"),
        Index("ix_analyses_created_at", "created_at"),
        CheckConstraint(
            "status IN ('PENDING', 'PROCESSING', 'COMPLETED', 'FAILED')",
            name="ck_analyses_status",
        ),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def __repr__(self) -> str:
        return f"<Analysis {self.id} status={self.status} retries={self.retry_count}>"
