import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class ProcessingJob(Base):
    __tablename__ = "processing_jobs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    content_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("content.id", ondelete="CASCADE"), nullable=False, index=True
    )
    job_type: Mapped[str] = mapped_column(String(50), nullable=False)  # clean_transcript | extract_insights | generate_posts
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)

    progress: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    result_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    started_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)


# at most one pending/processing job per (content_id, job_type)
Index(
    "uq_processing_jobs_active",
    ProcessingJob.content_id,
    ProcessingJob.job_type,
    unique=True,
    postgresql_where=text("status IN ('pending', 'processing')"),
    sqlite_where=text("status IN ('pending', 'processing')"),
)
