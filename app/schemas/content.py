from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

ContentType = Literal["transcript", "insight", "post", "scheduled_post"]


class EntityCreate(BaseModel):
    content_type: ContentType
    id: Optional[uuid.UUID] = None
    status: Optional[str] = None  # defaults to the type's initial status

    title: Optional[str] = None
    raw_content: Optional[str] = None
    processed_content: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None

    parent_id: Optional[uuid.UUID] = None
    root_transcript_id: Optional[uuid.UUID] = None

    # transcript
    source_type: Optional[str] = None
    source_url: Optional[str] = None
    file_path: Optional[str] = None

    # post; scheduled_time is refused here, scheduling sets it
    platform: Optional[str] = None
    scheduled_time: Optional[datetime] = None

    word_count: Optional[int] = Field(default=None, ge=0)
    duration_seconds: Optional[int] = Field(default=None, ge=0)


class ContentFilter(BaseModel):
    content_type: Optional[ContentType] = None
    status: Optional[str] = None
    platform: Optional[str] = None
    parent_id: Optional[uuid.UUID] = None
    root_transcript_id: Optional[uuid.UUID] = None
    limit: int = Field(default=50, ge=1, le=1000)
    offset: int = Field(default=0, ge=0)


class EntityOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    content_type: str
    status: str
    title: Optional[str] = None
    raw_content: Optional[str] = None
    processed_content: Optional[str] = None
    metadata: Optional[dict[str, Any]] = Field(default=None, validation_alias="meta")
    parent_id: Optional[uuid.UUID] = None
    root_transcript_id: Optional[uuid.UUID] = None

    source_type: Optional[str] = None
    source_url: Optional[str] = None
    file_path: Optional[str] = None

    platform: Optional[str] = None
    scheduled_time: Optional[datetime] = None
    retry_count: Optional[int] = None
    last_attempt: Optional[datetime] = None
    error_message: Optional[str] = None
    external_post_id: Optional[str] = None
    published_at: Optional[datetime] = None

    word_count: Optional[int] = None
    duration_seconds: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class PipelineOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    transcript: EntityOut
    insights: list[EntityOut]
    posts: list[EntityOut]
    scheduled_posts: list[EntityOut]


class RelationshipCreate(BaseModel):
    parent_id: uuid.UUID
    child_id: uuid.UUID
    relationship_type: Literal["transcript_to_insight", "insight_to_post", "post_to_scheduled"]


class RelationshipOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    parent_id: uuid.UUID
    child_id: uuid.UUID
    relationship_type: str
    created_at: datetime
