import uuid
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.services import content_store, job_tracker

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("/overview")
def overview(db: Session = Depends(get_db), root_transcript_id: Optional[uuid.UUID] = None):
    return {
        **content_store.pipeline_stats(db, root_transcript_id),
        "jobs": job_tracker.job_stats(db),
    }
