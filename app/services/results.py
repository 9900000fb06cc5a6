import uuid
from dataclasses import dataclass
from datetime import datetime

from app.errors import PipelineError


@dataclass
class ItemResult:
    """Outcome of one item inside a bulk call; bulk calls never raise for these."""

    id: uuid.UUID
    ok: bool
    status: str | None = None
    scheduled_time: datetime | None = None
    error: str | None = None
    detail: str | None = None

    @classmethod
    def failure(cls, item_id: uuid.UUID, exc: PipelineError) -> "ItemResult":
        return cls(id=item_id, ok=False, error=exc.code, detail=exc.message)
