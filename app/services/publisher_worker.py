import logging
import uuid
from dataclasses import dataclass
from typing import Mapping

from sqlalchemy import asc, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.errors import InvalidTransitionError, PipelineError, PublishError
from app.models.content import Post, content_table
from app.services import content_store
from app.services.clock import Clock, resolve
from app.services.publishers import PlatformPublisher
from app.utils.constants import POST, SCHEDULED_POST

logger = logging.getLogger(__name__)


@dataclass
class PublishOutcome:
    post_id: uuid.UUID
    status: str
    external_post_id: str | None = None
    error: str | None = None
    delivered: bool = False  # False when no adapter call was made

    @property
    def ok(self) -> bool:
        return self.status == "published"


def _mirror_record(db: Session, post_id: uuid.UUID, from_status: str, to_status: str, now, **values) -> None:
    # the post's scheduled_post record follows the post through each attempt
    db.execute(
        update(content_table)
        .where(content_table.c.parent_id == post_id)
        .where(content_table.c.content_type == SCHEDULED_POST)
        .where(content_table.c.status == from_status)
        .values(status=to_status, updated_at=now, **values)
    )


def fetch_due(db: Session, limit: int = 50, clock: Clock | None = None) -> list[uuid.UUID]:
    now = resolve(clock).now()
    q = (
        select(Post.id)
        .where(Post.status == "scheduled")
        .where(Post.scheduled_time.isnot(None))
        .where(Post.scheduled_time <= now)
        .order_by(asc(Post.scheduled_time), asc(Post.id))
        .limit(limit)
    )
    return list(db.execute(q).scalars().all())


def _record(db: Session, post_id: uuid.UUID, target: str, clock: Clock | None, **values) -> None:
    now = resolve(clock).now()
    try:
        if not content_store.compare_and_set(db, post_id, "publishing", target, clock, **values):
            raise InvalidTransitionError(f"Post {post_id} is no longer publishing", current=None, target=target)
        _mirror_record(db, post_id, "publishing", target, now, **values)
        db.commit()
    except Exception:
        db.rollback()
        raise


def attempt(
    db: Session,
    post_id: uuid.UUID,
    publishers: Mapping[str, PlatformPublisher],
    clock: Clock | None = None,
) -> PublishOutcome:
    """
    One publish attempt: scheduled -> publishing -> published | failed.

    The scheduled -> publishing compare-and-set is the per-post claim: a second
    concurrent attempt on the same post loses it and raises
    InvalidTransitionError without calling the platform.
    """
    content_store.get(db, post_id, content_type=POST)
    now = resolve(clock).now()
    try:
        if not content_store.compare_and_set(db, post_id, "scheduled", "publishing", clock, last_attempt=now):
            current = content_store.get(db, post_id).status
            raise InvalidTransitionError(
                f"Post {post_id} is {current}; only scheduled posts can be published",
                current=current,
                target="publishing",
            )
        _mirror_record(db, post_id, "scheduled", "publishing", now, last_attempt=now)
        db.commit()
    except Exception:
        db.rollback()
        raise

    post = content_store.get(db, post_id, content_type=POST)

    if post.external_post_id:
        # already delivered under this id; never post it to the platform twice
        _record(db, post_id, "published", clock, published_at=now, error_message=None)
        logger.info("Post %s already has external id %s; marked published", post_id, post.external_post_id)
        return PublishOutcome(post_id=post_id, status="published", external_post_id=post.external_post_id)

    publisher = publishers.get((post.platform or "").lower())
    try:
        if publisher is None:
            raise PublishError(f"No publisher configured for platform={post.platform}")
        receipt = publisher.publish(post)
    except Exception as e:
        error = str(e) or e.__class__.__name__
        retry_count = (post.retry_count or 0) + 1
        _record(db, post_id, "failed", clock, error_message=error, retry_count=retry_count)
        logger.warning("Publishing post %s to %s failed (attempt %d): %s", post_id, post.platform, retry_count, error)
        return PublishOutcome(post_id=post_id, status="failed", error=error, delivered=publisher is not None)

    _record(
        db,
        post_id,
        "published",
        clock,
        external_post_id=receipt.external_post_id,
        published_at=resolve(clock).now(),
        error_message=None,
    )
    logger.info("Published post %s to %s as %s", post_id, post.platform, receipt.external_post_id)
    return PublishOutcome(
        post_id=post_id, status="published", external_post_id=receipt.external_post_id, delivered=True
    )


def publish_due(
    db: Session,
    publishers: Mapping[str, PlatformPublisher],
    limit: int = 50,
    clock: Clock | None = None,
):
    due_ids = fetch_due(db, limit=limit, clock=clock)
    results: list[PublishOutcome] = []
    skipped = 0

    for post_id in due_ids:
        try:
            results.append(attempt(db, post_id, publishers, clock))
        except PipelineError as e:
            # claimed by another worker, unscheduled, or deleted since the select
            logger.info("Skipped post %s: %s", post_id, e.message)
            skipped += 1
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Storage error while publishing post %s; moving on", post_id)
            skipped += 1

    published = sum(1 for r in results if r.ok)
    return {
        "due": len(due_ids),
        "published": published,
        "failed": len(results) - published,
        "skipped": skipped,
        "results": results,
    }


def publish_post(
    db: Session,
    post_id: uuid.UUID,
    publishers: Mapping[str, PlatformPublisher],
    clock: Clock | None = None,
) -> PublishOutcome:
    """Publish one scheduled post now. A post that is already out is left alone."""
    post = content_store.get(db, post_id, content_type=POST)
    if post.status == "published" and post.external_post_id:
        return PublishOutcome(post_id=post_id, status="published", external_post_id=post.external_post_id)

    outcome = attempt(db, post_id, publishers, clock)
    if not outcome.ok:
        raise PublishError(f"Publishing post {post_id} failed: {outcome.error}", post_id=str(post_id))
    return outcome


def retry(
    db: Session,
    post_id: uuid.UUID,
    publishers: Mapping[str, PlatformPublisher],
    clock: Clock | None = None,
) -> PublishOutcome:
    """Re-arm a failed post and attempt it again. retry_count keeps counting across retries."""
    post = content_store.get(db, post_id, content_type=POST)
    now = resolve(clock).now()
    try:
        if not content_store.compare_and_set(db, post_id, "failed", "scheduled", clock):
            raise InvalidTransitionError(
                f"Only failed posts can be retried (post {post_id} is {post.status})",
                current=post.status,
                target="scheduled",
            )
        _mirror_record(db, post_id, "failed", "scheduling", now)
        _mirror_record(db, post_id, "scheduling", "scheduled", now)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Retrying post %s (previous failures: %d)", post_id, post.retry_count or 0)
    outcome = attempt(db, post_id, publishers, clock)
    if not outcome.ok:
        raise PublishError(f"Retry of post {post_id} failed: {outcome.error}", post_id=str(post_id))
    return outcome
