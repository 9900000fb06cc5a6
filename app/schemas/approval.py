import uuid
from typing import List, Optional

from pydantic import BaseModel, Field


class TransitionRequest(BaseModel):
    target_status: str


class BulkStatusRequest(BaseModel):
    content_ids: List[uuid.UUID] = Field(min_length=1)
    target_status: str


class ItemResultOut(BaseModel):
    id: uuid.UUID
    ok: bool
    status: Optional[str] = None
    error: Optional[str] = None
    detail: Optional[str] = None
