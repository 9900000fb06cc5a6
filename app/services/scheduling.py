"""
Slot selection and conflict-free scheduling of approved posts.

Conflicts are per platform: two posts on the same platform may not be
scheduled within the platform's conflict window of each other. The
check-then-write runs while holding the platform's row lock, so two
schedulers on one platform take turns.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from itertools import islice
from typing import Iterable, Iterator, Sequence

from sqlalchemy import and_, asc, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.errors import (
    InvalidTransitionError,
    NoAvailableSlotError,
    PipelineError,
    SlotConflictError,
    ValidationError,
)
from app.models.content import Post, ScheduledPost, content_table
from app.models.platform import Platform
from app.models.relationship import ContentRelationship
from app.services import content_store, pipeline
from app.services.clock import Clock, resolve, to_utc_naive
from app.services.results import ItemResult
from app.utils.constants import POST, RELATIONSHIP_TYPES, SCHEDULED_POST, SLOT_HOLDING_STATES

logger = logging.getLogger(__name__)


def _platform_key(platform: str | None) -> str:
    return (platform or "").strip().lower()


def _slot_time(item) -> tuple[str, datetime | None]:
    """Accept (platform, time) pairs or anything with .platform/.scheduled_time."""
    if isinstance(item, tuple):
        platform, when = item
    else:
        platform, when = item.platform, item.scheduled_time
    return _platform_key(platform), to_utc_naive(when) if when else None


def conflicts(candidate: datetime, taken: Iterable[datetime], window_minutes: int) -> bool:
    window = timedelta(minutes=window_minutes)
    return any(abs(candidate - when) <= window for when in taken)


def iter_slots(
    platform: str,
    existing_scheduled: Iterable,
    days_ahead: int,
    conflict_window_minutes: int,
    now: datetime,
    slot_times: Sequence,
) -> Iterator[datetime]:
    """
    Walk the daily cadence forward from today, one day at a time, for
    ``days_ahead`` days, yielding each future time that is clear of every
    existing post on the same platform.
    """
    key = _platform_key(platform)
    now = to_utc_naive(now)
    taken = []
    for item in existing_scheduled:
        item_platform, when = _slot_time(item)
        if item_platform == key and when is not None:
            taken.append(when)

    first_day = now.date()
    for offset in range(days_ahead):
        day = first_day + timedelta(days=offset)
        for at in slot_times:
            candidate = datetime.combine(day, at)
            if candidate <= now:
                continue
            if conflicts(candidate, taken, conflict_window_minutes):
                logger.debug("Slot %s on %s conflicts with an existing post", candidate, key)
                continue
            yield candidate


def suggest_slots(
    platform: str,
    existing_scheduled: Iterable,
    days_ahead: int | None = None,
    conflict_window_minutes: int | None = None,
    *,
    limit: int | None = None,
    clock: Clock | None = None,
    settings: Settings | None = None,
) -> list[datetime]:
    settings = settings or get_settings()
    slots = iter_slots(
        platform,
        existing_scheduled,
        settings.days_ahead if days_ahead is None else days_ahead,
        settings.window_for(platform) if conflict_window_minutes is None else conflict_window_minutes,
        resolve(clock).now(),
        settings.slot_times_for(platform),
    )
    return list(islice(slots, limit or settings.max_suggestions))


def scheduled_on(db: Session, platform: str, exclude_id: uuid.UUID | None = None) -> list[Post]:
    q = (
        select(Post)
        .where(func.lower(Post.platform) == _platform_key(platform))
        .where(Post.status.in_(SLOT_HOLDING_STATES))
        .where(Post.scheduled_time.isnot(None))
        .order_by(asc(Post.scheduled_time))
    )
    if exclude_id is not None:
        q = q.where(Post.id != exclude_id)
    return list(db.execute(q).scalars().all())


def available_slots(
    db: Session,
    platform: str,
    days_ahead: int | None = None,
    clock: Clock | None = None,
    settings: Settings | None = None,
) -> list[datetime]:
    return suggest_slots(platform, scheduled_on(db, platform), days_ahead, clock=clock, settings=settings)


def _ensure_platform(db: Session, platform: str) -> None:
    """Platform rows are created on first use, outside the booking transaction."""
    key = _platform_key(platform)
    if db.get(Platform, key) is not None:
        return
    db.add(Platform(id=key, display_name=key))
    try:
        db.commit()
    except IntegrityError:
        # created concurrently by another scheduler
        db.rollback()


def _lock_platform(db: Session, platform: str) -> None:
    """Hold the platform's row lock until the booking transaction ends."""
    db.execute(select(Platform).where(Platform.id == _platform_key(platform)).with_for_update())


def _schedulable_post(db: Session, post_id: uuid.UUID) -> Post:
    post = content_store.get(db, post_id, content_type=POST)
    if not post.platform:
        raise ValidationError(f"Post {post_id} has no platform to schedule on")
    return post


def _book(
    db: Session,
    post: Post,
    when: datetime,
    settings: Settings,
    clock: Clock | None,
) -> None:
    """Claim the post, check the platform calendar, write the slot. Caller commits."""
    window = settings.window_for(post.platform)

    if not content_store.compare_and_set(db, post.id, "approved", "scheduling", clock):
        current = content_store.get(db, post.id).status
        raise InvalidTransitionError(
            f"Post {post.id} must be approved to schedule (is {current})", current=current, target="scheduled"
        )

    _lock_platform(db, post.platform)
    lo, hi = when - timedelta(minutes=window), when + timedelta(minutes=window)
    clash = db.execute(
        select(content_table.c.id, content_table.c.scheduled_time)
        .where(content_table.c.content_type == POST)
        .where(func.lower(content_table.c.platform) == _platform_key(post.platform))
        .where(content_table.c.status.in_(SLOT_HOLDING_STATES))
        .where(and_(content_table.c.scheduled_time >= lo, content_table.c.scheduled_time <= hi))
        .where(content_table.c.id != post.id)
    ).first()
    if clash is not None:
        raise SlotConflictError(
            f"{when.isoformat()} is within {window} minutes of post {clash.id} on {post.platform}",
            conflicting_id=str(clash.id),
        )

    if not content_store.compare_and_set(db, post.id, "scheduling", "scheduled", clock, scheduled_time=when):
        raise InvalidTransitionError(f"Post {post.id} left scheduling unexpectedly", current=None, target="scheduled")

    now = resolve(clock).now()
    record = ScheduledPost(
        id=uuid.uuid4(),
        status="scheduled",
        title=post.title,
        processed_content=post.processed_content,
        parent_id=post.id,
        root_transcript_id=post.root_transcript_id,
        platform=_platform_key(post.platform),
        scheduled_time=when,
        retry_count=0,
        created_at=now,
        updated_at=now,
    )
    db.add(record)
    db.add(
        ContentRelationship(
            parent_id=post.id,
            child_id=record.id,
            relationship_type=RELATIONSHIP_TYPES[(POST, SCHEDULED_POST)],
            created_at=now,
        )
    )
    db.flush()


def schedule_at(
    db: Session,
    post_id: uuid.UUID,
    requested_time: datetime,
    clock: Clock | None = None,
    settings: Settings | None = None,
) -> Post:
    settings = settings or get_settings()
    when = to_utc_naive(requested_time)
    now = resolve(clock).now()

    post = _schedulable_post(db, post_id)
    if when <= now:
        raise ValidationError(f"Scheduled time {when.isoformat()} is not in the future")

    _ensure_platform(db, post.platform)

    try:
        _book(db, post, when, settings, clock)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Scheduled post %s on %s at %s", post_id, post.platform, when.isoformat())
    return content_store.get(db, post_id)


def auto_schedule(
    db: Session,
    post_id: uuid.UUID,
    clock: Clock | None = None,
    settings: Settings | None = None,
) -> Post:
    """Schedule at the earliest free slot; a slot lost to a concurrent writer moves on to the next one."""
    settings = settings or get_settings()
    post = _schedulable_post(db, post_id)
    if post.status != "approved":
        raise InvalidTransitionError(
            f"Post {post_id} must be approved to schedule (is {post.status})", current=post.status, target="scheduled"
        )

    candidates = suggest_slots(
        post.platform,
        scheduled_on(db, post.platform, exclude_id=post.id),
        clock=clock,
        settings=settings,
    )
    if not candidates:
        raise NoAvailableSlotError(
            f"No free slot on {post.platform} in the next {settings.days_ahead} days"
        )

    for when in candidates:
        try:
            return schedule_at(db, post_id, when, clock, settings)
        except SlotConflictError:
            logger.info("Slot %s on %s was taken meanwhile; trying the next one", when, post.platform)
    raise NoAvailableSlotError(f"Every suggested slot on {post.platform} was taken concurrently")


def auto_schedule_project(
    db: Session,
    root_transcript_id: uuid.UUID,
    limit: int,
    clock: Clock | None = None,
    settings: Settings | None = None,
) -> list[ItemResult]:
    if limit < 1:
        raise ValidationError("limit must be at least 1")
    content_store.get(db, root_transcript_id, content_type="transcript")

    post_ids = db.execute(
        select(content_table.c.id)
        .where(content_table.c.content_type == POST)
        .where(content_table.c.root_transcript_id == root_transcript_id)
        .where(content_table.c.status == "approved")
        .where(content_table.c.scheduled_time.is_(None))
        .order_by(asc(content_table.c.created_at), asc(content_table.c.id))
        .limit(limit)
    ).scalars().all()

    results: list[ItemResult] = []
    for post_id in post_ids:
        try:
            post = auto_schedule(db, post_id, clock, settings)
            results.append(ItemResult(id=post_id, ok=True, status=post.status, scheduled_time=post.scheduled_time))
        except PipelineError as e:
            results.append(ItemResult.failure(post_id, e))

    logger.info(
        "Auto-scheduled %d/%d posts for transcript %s",
        sum(1 for r in results if r.ok), len(results), root_transcript_id,
    )
    return results


def unschedule(db: Session, post_id: uuid.UUID, clock: Clock | None = None) -> Post:
    post = content_store.get(db, post_id, content_type=POST)
    if post.status != "scheduled":
        raise InvalidTransitionError(
            f"Only scheduled posts can be unscheduled (post {post_id} is {post.status})",
            current=post.status,
            target="approved",
        )
    outcome = pipeline.transition(db, post_id, "approved", clock)
    logger.info("Unscheduled post %s", post_id)
    return outcome.entity
