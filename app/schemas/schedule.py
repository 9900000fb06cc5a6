from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional
import uuid

class ScheduleAtRequest(BaseModel):
    scheduled_time: datetime  # ISO string from UI

class AutoScheduleProjectRequest(BaseModel):
    root_transcript_id: uuid.UUID
    limit: int = Field(default=10, ge=1, le=500)

class SlotSuggestions(BaseModel):
    platform: str
    slots: List[datetime]

class ScheduleOutcomeOut(BaseModel):
    id: uuid.UUID
    ok: bool
    scheduled_time: Optional[datetime] = None
    error: Optional[str] = None
    detail: Optional[str] = None
