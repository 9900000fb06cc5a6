from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
import uuid

from app.database import get_db
from app.schemas.content import EntityOut
from app.schemas.schedule import (
    AutoScheduleProjectRequest,
    ScheduleAtRequest,
    ScheduleOutcomeOut,
    SlotSuggestions,
)
from app.services import scheduling

router = APIRouter(prefix="/schedule", tags=["schedule"])

@router.get("/slots/{platform}", response_model=SlotSuggestions)
def slots(platform: str, db: Session = Depends(get_db), days_ahead: int | None = Query(None, ge=1, le=60)):
    return SlotSuggestions(platform=platform.lower(), slots=scheduling.available_slots(db, platform, days_ahead))

@router.post("/project/auto", response_model=list[ScheduleOutcomeOut])
def auto_schedule_project(payload: AutoScheduleProjectRequest, db: Session = Depends(get_db)):
    results = scheduling.auto_schedule_project(db, payload.root_transcript_id, payload.limit)
    return [
        ScheduleOutcomeOut(id=r.id, ok=r.ok, scheduled_time=r.scheduled_time, error=r.error, detail=r.detail)
        for r in results
    ]

@router.post("/{post_id}", response_model=EntityOut)
def schedule_at(post_id: uuid.UUID, payload: ScheduleAtRequest, db: Session = Depends(get_db)):
    return scheduling.schedule_at(db, post_id, payload.scheduled_time)

@router.post("/{post_id}/auto", response_model=EntityOut)
def auto_schedule(post_id: uuid.UUID, db: Session = Depends(get_db)):
    return scheduling.auto_schedule(db, post_id)

@router.delete("/{post_id}", response_model=EntityOut)
def unschedule(post_id: uuid.UUID, db: Session = Depends(get_db)):
    return scheduling.unschedule(db, post_id)
