import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.utils.constants import INSIGHT, POST, SCHEDULED_POST, TRANSCRIPT

MetadataBag = JSON().with_variant(JSONB(), "postgresql")


class ContentEntity(Base):
    """One row per pipeline entity; the variant is picked by ``content_type``."""

    __tablename__ = "content"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    content_type: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(30), nullable=False, index=True)

    title: Mapped[str | None] = mapped_column(String(300), nullable=True)
    raw_content: Mapped[str | None] = mapped_column(Text, nullable=True)
    processed_content: Mapped[str | None] = mapped_column(Text, nullable=True)
    # "metadata" is reserved on declarative classes
    meta: Mapped[dict[str, Any] | None] = mapped_column("metadata", MetadataBag, nullable=True)

    parent_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("content.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    root_transcript_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True, index=True)

    word_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    duration_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    children: Mapped[list["ContentEntity"]] = relationship(
        back_populates="parent",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    parent: Mapped[Optional["ContentEntity"]] = relationship(back_populates="children", remote_side=[id])

    __mapper_args__ = {
        "polymorphic_on": "content_type",
    }


class Transcript(ContentEntity):
    source_type: Mapped[str | None] = mapped_column(String(30), nullable=True)  # upload | recording | url
    source_url: Mapped[str | None] = mapped_column(String(1500), nullable=True)
    file_path: Mapped[str | None] = mapped_column(String(1500), nullable=True)

    __mapper_args__ = {"polymorphic_identity": TRANSCRIPT}


class Insight(ContentEntity):
    __mapper_args__ = {"polymorphic_identity": INSIGHT}


class PublishFieldsMixin:
    # shared by posts and their scheduled_post records, one set of columns in the table
    platform: Mapped[str | None] = mapped_column(String(50), nullable=True, use_existing_column=True)
    scheduled_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, use_existing_column=True)
    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=True, use_existing_column=True)
    last_attempt: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, use_existing_column=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True, use_existing_column=True)
    external_post_id: Mapped[str | None] = mapped_column(String(200), nullable=True, use_existing_column=True)
    published_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, use_existing_column=True)


class Post(PublishFieldsMixin, ContentEntity):
    __mapper_args__ = {"polymorphic_identity": POST}


class ScheduledPost(PublishFieldsMixin, ContentEntity):
    __mapper_args__ = {"polymorphic_identity": SCHEDULED_POST}


ENTITY_CLASSES = {
    TRANSCRIPT: Transcript,
    INSIGHT: Insight,
    POST: Post,
    SCHEDULED_POST: ScheduledPost,
}

content_table = ContentEntity.__table__

Index("ix_content_platform_slot", content_table.c.platform, content_table.c.status, content_table.c.scheduled_time)
Index("ix_content_created", content_table.c.created_at, content_table.c.id)
