"""
Bookkeeping for the asynchronous AI jobs (clean, extract insights, generate posts).

Jobs move forward only: pending -> processing -> completed | failed. They are
never deleted on completion; the table doubles as an audit trail.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import Iterable

from sqlalchemy import asc, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.errors import InvalidTransitionError, JobAlreadyActiveError, NotFoundError, ValidationError
from app.models.content import ContentEntity
from app.models.job import ProcessingJob
from app.schemas.content import EntityCreate
from app.schemas.job import ContentDraft
from app.services import content_store
from app.services.clock import Clock, resolve
from app.utils.constants import (
    CLEAN_TRANSCRIPT,
    EXTRACT_INSIGHTS,
    GENERATE_POSTS,
    INSIGHT,
    JOB_ACTIVE_STATES,
    JOB_COMPLETED,
    JOB_FAILED,
    JOB_PENDING,
    JOB_PROCESSING,
    JOB_SOURCE_TYPE,
    POST,
)

logger = logging.getLogger(__name__)

# job type -> (status the source sits in while the job runs, status on success, status on failure)
SOURCE_STATUS_FLOW = {
    CLEAN_TRANSCRIPT: ("cleaning", "cleaned", "raw"),
    EXTRACT_INSIGHTS: ("processing_insights", "insights_generated", "cleaned"),
}

# job type -> content type of the entities its output becomes
OUTPUT_TYPE = {
    EXTRACT_INSIGHTS: INSIGHT,
    GENERATE_POSTS: POST,
}


def get_job(db: Session, job_id: uuid.UUID) -> ProcessingJob:
    job = db.get(ProcessingJob, job_id, populate_existing=True)
    if job is None:
        raise NotFoundError(f"Job {job_id} not found", id=str(job_id))
    return job


def active_job(db: Session, content_id: uuid.UUID, job_type: str) -> ProcessingJob | None:
    q = (
        select(ProcessingJob)
        .where(ProcessingJob.content_id == content_id)
        .where(ProcessingJob.job_type == job_type)
        .where(ProcessingJob.status.in_(JOB_ACTIVE_STATES))
    )
    return db.execute(q).scalars().first()


def stage_job(db: Session, content_id: uuid.UUID, job_type: str, clock: Clock | None = None) -> ProcessingJob:
    """
    Insert a pending job inside the caller's transaction.

    The partial unique index on (content_id, job_type) for active jobs is what
    settles a race; the lookup first only gives the common case a clean error.
    """
    if job_type not in JOB_SOURCE_TYPE:
        raise ValidationError(f"Unknown job type: {job_type}")

    source = db.get(ContentEntity, content_id)
    if source is None:
        raise NotFoundError(f"Content {content_id} not found", id=str(content_id))
    if source.content_type != JOB_SOURCE_TYPE[job_type]:
        raise ValidationError(f"{job_type} runs against a {JOB_SOURCE_TYPE[job_type]}, not a {source.content_type}")

    existing = active_job(db, content_id, job_type)
    if existing is not None:
        raise JobAlreadyActiveError(
            f"{job_type} is already {existing.status} for {content_id}", job_id=str(existing.id)
        )

    job = ProcessingJob(
        content_id=content_id,
        job_type=job_type,
        status=JOB_PENDING,
        progress=0,
        created_at=resolve(clock).now(),
    )
    db.add(job)
    try:
        db.flush()
    except IntegrityError as e:
        raise JobAlreadyActiveError(f"{job_type} is already active for {content_id}") from e
    return job


def start(db: Session, content_id: uuid.UUID, job_type: str, clock: Clock | None = None) -> ProcessingJob:
    try:
        job = stage_job(db, content_id, job_type, clock)
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise JobAlreadyActiveError(f"{job_type} is already active for {content_id}") from e
    except Exception:
        db.rollback()
        raise

    logger.info("Queued %s job %s for %s", job_type, job.id, content_id)
    return job


def _move(db: Session, job: ProcessingJob, allowed_from: Iterable[str], target: str, **values) -> None:
    """Forward-only status move guarded on the status we read."""
    allowed_from = tuple(allowed_from)
    if job.status not in allowed_from:
        raise InvalidTransitionError(
            f"Job {job.id} is {job.status}; cannot move to {target}", current=job.status, target=target
        )
    res = db.execute(
        update(ProcessingJob)
        .where(ProcessingJob.id == job.id)
        .where(ProcessingJob.status == job.status)
        .values(status=target, **values)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        raise InvalidTransitionError(
            f"Job {job.id} changed status concurrently; cannot move to {target}", current=job.status, target=target
        )


def begin(db: Session, job_id: uuid.UUID, clock: Clock | None = None) -> ProcessingJob:
    job = get_job(db, job_id)
    try:
        _move(db, job, [JOB_PENDING], JOB_PROCESSING, started_at=resolve(clock).now())
        db.commit()
    except Exception:
        db.rollback()
        raise
    return get_job(db, job_id)


def report_progress(db: Session, job_id: uuid.UUID, progress: int) -> ProcessingJob:
    job = get_job(db, job_id)
    if job.status != JOB_PROCESSING:
        raise InvalidTransitionError(
            f"Progress can only be reported while processing (job {job_id} is {job.status})",
            current=job.status,
            target=JOB_PROCESSING,
        )
    progress = max(0, min(100, int(progress)))
    try:
        res = db.execute(
            update(ProcessingJob)
            .where(ProcessingJob.id == job_id)
            .where(ProcessingJob.status == JOB_PROCESSING)
            .values(progress=progress)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            raise InvalidTransitionError(f"Job {job_id} is no longer processing", current=None, target=JOB_PROCESSING)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return get_job(db, job_id)


def _finish_times(job: ProcessingJob, now: datetime) -> dict:
    began = job.started_at or job.created_at
    return {"completed_at": now, "duration_ms": int((now - began).total_seconds() * 1000)}


def _shift_source(db: Session, job: ProcessingJob, outcome_index: int, clock: Clock | None) -> None:
    flow = SOURCE_STATUS_FLOW.get(job.job_type)
    if flow is None:
        return
    running = flow[0]
    # a job started directly, outside a transition, leaves the source untouched
    content_store.compare_and_set(db, job.content_id, running, flow[outcome_index], clock)


def complete(
    db: Session,
    job_id: uuid.UUID,
    drafts: list[ContentDraft] | None = None,
    clock: Clock | None = None,
) -> ProcessingJob:
    """
    Close a job successfully and materialise its output in the same commit.

    extract_insights / generate_posts: one child entity per draft, parented to
    the job's source. clean_transcript: the first draft becomes the
    transcript's processed content.
    """
    now = resolve(clock).now()
    drafts = list(drafts or [])
    job = get_job(db, job_id)

    try:
        _move(db, job, JOB_ACTIVE_STATES, JOB_COMPLETED, progress=100, result_count=len(drafts),
              **_finish_times(job, now))

        source = content_store.get(db, job.content_id)
        if job.job_type == CLEAN_TRANSCRIPT:
            if drafts:
                source.processed_content = drafts[0].content
                source.word_count = len(drafts[0].content.split())
                source.updated_at = now
                db.flush()
        else:
            child_type = OUTPUT_TYPE[job.job_type]
            for draft in drafts:
                content_store.build_entity(
                    db,
                    EntityCreate(
                        content_type=child_type,
                        title=draft.title,
                        processed_content=draft.content,
                        metadata=draft.metadata,
                        parent_id=source.id,
                        platform=draft.platform if child_type == POST else None,
                    ),
                    clock,
                )
            db.flush()

        _shift_source(db, job, 1, clock)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Job %s (%s) completed with %d results", job_id, job.job_type, len(drafts))
    return get_job(db, job_id)


def fail(db: Session, job_id: uuid.UUID, error_message: str, clock: Clock | None = None) -> ProcessingJob:
    now = resolve(clock).now()
    job = get_job(db, job_id)
    try:
        _move(db, job, JOB_ACTIVE_STATES, JOB_FAILED, error_message=error_message, **_finish_times(job, now))
        _shift_source(db, job, 2, clock)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.warning("Job %s (%s) failed: %s", job_id, job.job_type, error_message)
    return get_job(db, job_id)


def list_jobs(db: Session, content_id: uuid.UUID, job_type: str | None = None) -> list[ProcessingJob]:
    q = select(ProcessingJob).where(ProcessingJob.content_id == content_id)
    if job_type:
        q = q.where(ProcessingJob.job_type == job_type)
    q = q.order_by(asc(ProcessingJob.created_at), asc(ProcessingJob.id))
    return list(db.execute(q).scalars().all())


def find_stale_jobs(db: Session, older_than: timedelta, clock: Clock | None = None) -> list[ProcessingJob]:
    """Processing jobs started before now - older_than, for an outer timeout policy."""
    cutoff = resolve(clock).now() - older_than
    q = (
        select(ProcessingJob)
        .where(ProcessingJob.status == JOB_PROCESSING)
        .where(ProcessingJob.started_at < cutoff)
        .order_by(asc(ProcessingJob.started_at))
    )
    return list(db.execute(q).scalars().all())


def job_stats(db: Session) -> dict[str, dict[str, int]]:
    rows = db.execute(
        select(ProcessingJob.job_type, ProcessingJob.status, func.count())
        .group_by(ProcessingJob.job_type, ProcessingJob.status)
    )
    out: dict[str, dict[str, int]] = {}
    for job_type, status, n in rows:
        out.setdefault(job_type, {})[status] = n
    return out
