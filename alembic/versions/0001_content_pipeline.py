"""content pipeline tables

Revision ID: 0001_content_pipeline
Revises:
Create Date: 2026-10-18 09:00:00

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_content_pipeline"
down_revision = None
branch_labels = None
depends_on = None

ACTIVE_JOBS = sa.text("status IN ('pending', 'processing')")


def upgrade() -> None:
    op.create_table(
        "platforms",
        sa.Column("id", sa.String(50), primary_key=True),
        sa.Column("display_name", sa.String(100), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )

    op.create_table(
        "content",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("content_type", sa.String(30), nullable=False),
        sa.Column("status", sa.String(30), nullable=False),
        sa.Column("title", sa.String(300), nullable=True),
        sa.Column("raw_content", sa.Text(), nullable=True),
        sa.Column("processed_content", sa.Text(), nullable=True),
        sa.Column("metadata", sa.JSON().with_variant(postgresql.JSONB(), "postgresql"), nullable=True),
        sa.Column("parent_id", sa.Uuid(), sa.ForeignKey("content.id", ondelete="CASCADE"), nullable=True),
        sa.Column("root_transcript_id", sa.Uuid(), nullable=True),
        sa.Column("word_count", sa.Integer(), nullable=True),
        sa.Column("duration_seconds", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        # transcript
        sa.Column("source_type", sa.String(30), nullable=True),
        sa.Column("source_url", sa.String(1500), nullable=True),
        sa.Column("file_path", sa.String(1500), nullable=True),
        # post / scheduled_post
        sa.Column("platform", sa.String(50), nullable=True),
        sa.Column("scheduled_time", sa.DateTime(), nullable=True),
        sa.Column("retry_count", sa.Integer(), nullable=True),
        sa.Column("last_attempt", sa.DateTime(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("external_post_id", sa.String(200), nullable=True),
        sa.Column("published_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_content_content_type", "content", ["content_type"])
    op.create_index("ix_content_status", "content", ["status"])
    op.create_index("ix_content_parent_id", "content", ["parent_id"])
    op.create_index("ix_content_root_transcript_id", "content", ["root_transcript_id"])
    op.create_index("ix_content_platform_slot", "content", ["platform", "status", "scheduled_time"])
    op.create_index("ix_content_created", "content", ["created_at", "id"])

    op.create_table(
        "content_relationships",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("parent_id", sa.Uuid(), sa.ForeignKey("content.id", ondelete="CASCADE"), nullable=False),
        sa.Column("child_id", sa.Uuid(), sa.ForeignKey("content.id", ondelete="CASCADE"), nullable=False),
        sa.Column("relationship_type", sa.String(40), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("parent_id", "child_id", "relationship_type", name="uq_content_relationship"),
    )
    op.create_index("ix_content_relationships_parent_id", "content_relationships", ["parent_id"])
    op.create_index("ix_content_relationships_child_id", "content_relationships", ["child_id"])

    op.create_table(
        "processing_jobs",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("content_id", sa.Uuid(), sa.ForeignKey("content.id", ondelete="CASCADE"), nullable=False),
        sa.Column("job_type", sa.String(50), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("progress", sa.Integer(), nullable=False),
        sa.Column("result_count", sa.Integer(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
    )
    op.create_index("ix_processing_jobs_content_id", "processing_jobs", ["content_id"])
    op.create_index(
        "uq_processing_jobs_active",
        "processing_jobs",
        ["content_id", "job_type"],
        unique=True,
        postgresql_where=ACTIVE_JOBS,
        sqlite_where=ACTIVE_JOBS,
    )


def downgrade() -> None:
    op.drop_index("uq_processing_jobs_active", table_name="processing_jobs")
    op.drop_index("ix_processing_jobs_content_id", table_name="processing_jobs")
    op.drop_table("processing_jobs")
    op.drop_index("ix_content_relationships_child_id", table_name="content_relationships")
    op.drop_index("ix_content_relationships_parent_id", table_name="content_relationships")
    op.drop_table("content_relationships")
    for name in (
        "ix_content_created",
        "ix_content_platform_slot",
        "ix_content_root_transcript_id",
        "ix_content_parent_id",
        "ix_content_status",
        "ix_content_content_type",
    ):
        op.drop_index(name, table_name="content")
    op.drop_table("content")
    op.drop_table("platforms")
