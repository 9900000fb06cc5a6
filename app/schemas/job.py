import uuid
from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

JobType = Literal["clean_transcript", "extract_insights", "generate_posts"]


class JobStartRequest(BaseModel):
    content_id: uuid.UUID
    job_type: JobType


class ProgressRequest(BaseModel):
    progress: int  # clamped to 0..100 by the tracker


class ContentDraft(BaseModel):
    """One piece of job output: a cleaned transcript, an insight or a post."""

    title: Optional[str] = None
    content: str
    platform: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None


class JobCompleteRequest(BaseModel):
    drafts: List[ContentDraft] = Field(default_factory=list)


class JobFailRequest(BaseModel):
    error_message: str = Field(min_length=1)


class JobOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    content_id: uuid.UUID
    job_type: str
    status: str
    progress: int
    result_count: Optional[int] = None
    error_message: Optional[str] = None
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
