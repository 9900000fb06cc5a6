"""
Applies caller-requested status transitions.

The state machine decides legality and lists effects; this module commits the
status change (compare-and-set on the status it read) and performs the
effects in the same transaction.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Sequence

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.errors import InvalidTransitionError, PipelineError, ValidationError
from app.models.content import ContentEntity, content_table
from app.models.job import ProcessingJob
from app.services import content_store, job_tracker
from app.services.clock import Clock, resolve
from app.services.results import ItemResult
from app.services.state_machine import (
    Effect,
    EnqueueJob,
    ReleaseParentPost,
    ReleaseSlot,
    plan_transition,
)
from app.utils.constants import SCHEDULED_POST

logger = logging.getLogger(__name__)

OPEN_SLOT_STATES = ("scheduling", "scheduled", "failed")


@dataclass
class TransitionOutcome:
    entity: ContentEntity
    previous_status: str
    effects: list[Effect] = field(default_factory=list)
    jobs: list[ProcessingJob] = field(default_factory=list)


def _cancel_open_slots(db: Session, post_id: uuid.UUID, clock: Clock | None) -> None:
    db.execute(
        update(content_table)
        .where(content_table.c.parent_id == post_id)
        .where(content_table.c.content_type == SCHEDULED_POST)
        .where(content_table.c.status.in_(OPEN_SLOT_STATES))
        .values(status="cancelled", updated_at=resolve(clock).now())
    )


def apply_effects(db: Session, effects: Sequence[Effect], clock: Clock | None = None) -> list[ProcessingJob]:
    jobs: list[ProcessingJob] = []
    for effect in effects:
        if isinstance(effect, EnqueueJob):
            existing = job_tracker.active_job(db, effect.content_id, effect.job_type)
            if existing is not None:
                logger.info("Re-attached to active %s job %s", effect.job_type, existing.id)
                jobs.append(existing)
            else:
                jobs.append(job_tracker.stage_job(db, effect.content_id, effect.job_type, clock))

        elif isinstance(effect, ReleaseSlot):
            db.execute(
                update(content_table)
                .where(content_table.c.id == effect.post_id)
                .values(scheduled_time=None)
            )
            _cancel_open_slots(db, effect.post_id, clock)

        elif isinstance(effect, ReleaseParentPost):
            record = db.get(ContentEntity, effect.scheduled_post_id)
            if record is not None and record.parent_id is not None:
                # only a post still waiting on this slot goes back to approved
                content_store.compare_and_set(
                    db, record.parent_id, "scheduled", "approved", clock, scheduled_time=None
                )
    return jobs


def transition(
    db: Session,
    entity_id: uuid.UUID,
    target_status: str,
    clock: Clock | None = None,
) -> TransitionOutcome:
    entity = content_store.get(db, entity_id)
    current = entity.status
    try:
        effects = plan_transition(entity.content_type, current, target_status, entity.id)
        if not content_store.compare_and_set(db, entity_id, current, target_status, clock):
            raise InvalidTransitionError(
                f"{entity.content_type} {entity_id} is no longer {current}",
                current=current,
                target=target_status,
            )
        jobs = apply_effects(db, effects, clock)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("%s %s: %s -> %s", entity.content_type, entity_id, current, target_status)
    return TransitionOutcome(
        entity=content_store.get(db, entity_id),
        previous_status=current,
        effects=effects,
        jobs=jobs,
    )


def set_status_bulk(
    db: Session,
    entity_ids: Sequence[uuid.UUID],
    target_status: str,
    clock: Clock | None = None,
) -> list[ItemResult]:
    """Each id is its own transition; failures are reported per item, never raised."""
    if not entity_ids:
        raise ValidationError("entity_ids must be a non-empty list")

    results: list[ItemResult] = []
    for entity_id in entity_ids:
        try:
            outcome = transition(db, entity_id, target_status, clock)
            results.append(ItemResult(id=entity_id, ok=True, status=outcome.entity.status))
        except PipelineError as e:
            results.append(ItemResult.failure(entity_id, e))
        except SQLAlchemyError as e:
            logger.exception("Storage error while moving %s to %s", entity_id, target_status)
            results.append(ItemResult(id=entity_id, ok=False, error="storage_error", detail=str(e)))

    ok = sum(1 for r in results if r.ok)
    logger.info("Bulk %s: %d ok, %d failed", target_status, ok, len(results) - ok)
    return results
