"""create anonymous_users and analyses tables

Revision ID: 001_create_analyses
Revises:
Create Date: 2026-10-17

  • anonymous_users: session cookie token → owner id, upserted on each sighting
  • analyses: one row per gap-analysis request
    - state machine: PENDING → PROCESSING → COMPLETED / FAILED
    - content_hash is not unique; lookups pick the latest COMPLETED row
  • indexes for the cache-miss fallthrough (content_hash, status) and the
    per-session history listing (anonymous_user_id, created_at)
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID, JSONB


# revision identifiers
revision = "001_create_analyses"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ── anonymous_users table ─────────────────────────────────────────────
    op.create_table(
        "anonymous_users",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("session_id", sa.String(64), nullable=False),
        sa.Column("last_seen_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_anonymous_users_session_id", "anonymous_users", ["session_id"], unique=True)

    # ── analyses table ────────────────────────────────────────────────────
    op.create_table(
        "analyses",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "anonymous_user_id",
            UUID(as_uuid=True),
            sa.ForeignKey("anonymous_users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("content_hash", sa.String(64), nullable=False),
        sa.Column("resume_text", sa.Text(), nullable=False),
        sa.Column("job_description", sa.Text(), nullable=False),
        sa.Column("resume_filename", sa.String(255), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("result", JSONB(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("retry_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processing_time_ms", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(
            "status IN ('PENDING', 'PROCESSING', 'COMPLETED', 'FAILED')",
            name="ck_analyses_status",
        ),
    )
    op.create_index("ix_analyses_content_hash", "analyses", ["content_hash"])
    op.create_index("ix_analyses_hash_status", "analyses", ["content_hash", "status"])
    op.create_index("ix_analyses_owner_created", "analyses", ["anonymous_user_id", "created_at"])
    op.create_index("ix_analyses_created_at", "analyses", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_analyses_created_at", table_name="analyses")
    op.drop_index("ix_analyses_owner_created", table_name="analyses")
    op.drop_index("ix_analyses_hash_status", table_name="analyses")
    op.drop_index("ix_analyses_content_hash", table_name="analyses")
    op.drop_table("analyses")

    op.drop_index("ix_anonymous_users_session_id", table_name="anonymous_users")
    op.drop_table("anonymous_users")
