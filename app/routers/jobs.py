import uuid
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.config import get_settings
from app.database import get_db
from app.schemas.job import JobCompleteRequest, JobFailRequest, JobOut, JobStartRequest, JobType, ProgressRequest
from app.services import job_tracker

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.post("", response_model=JobOut, status_code=201)
def start(payload: JobStartRequest, db: Session = Depends(get_db)):
    return job_tracker.start(db, payload.content_id, payload.job_type)


@router.get("/stale", response_model=list[JobOut])
def stale(db: Session = Depends(get_db), minutes: Optional[int] = Query(None, ge=1)):
    minutes = minutes or get_settings().job_stale_after_minutes
    return job_tracker.find_stale_jobs(db, timedelta(minutes=minutes))


@router.get("/by-content/{content_id}", response_model=list[JobOut])
def by_content(content_id: uuid.UUID, db: Session = Depends(get_db), job_type: Optional[JobType] = None):
    return job_tracker.list_jobs(db, content_id, job_type)


@router.get("/{job_id}", response_model=JobOut)
def get_job(job_id: uuid.UUID, db: Session = Depends(get_db)):
    return job_tracker.get_job(db, job_id)


@router.post("/{job_id}/begin", response_model=JobOut)
def begin(job_id: uuid.UUID, db: Session = Depends(get_db)):
    return job_tracker.begin(db, job_id)


@router.post("/{job_id}/progress", response_model=JobOut)
def progress(job_id: uuid.UUID, payload: ProgressRequest, db: Session = Depends(get_db)):
    return job_tracker.report_progress(db, job_id, payload.progress)


@router.post("/{job_id}/complete", response_model=JobOut)
def complete(job_id: uuid.UUID, payload: JobCompleteRequest, db: Session = Depends(get_db)):
    return job_tracker.complete(db, job_id, payload.drafts)


@router.post("/{job_id}/fail", response_model=JobOut)
def fail(job_id: uuid.UUID, payload: JobFailRequest, db: Session = Depends(get_db)):
    return job_tracker.fail(db, job_id, payload.error_message)
