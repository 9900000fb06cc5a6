"""
Entity store: CRUD and filtered listing over the polymorphic ``content`` table,
with the relationship edge set kept in step with ``parent_id``.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import asc, delete, desc, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.errors import NotFoundError, ValidationError
from app.models.content import ENTITY_CLASSES, ContentEntity, content_table
from app.models.job import ProcessingJob
from app.models.relationship import ContentRelationship
from app.schemas.content import ContentFilter, EntityCreate
from app.services.clock import Clock, resolve
from app.services.state_machine import ensure_known_status
from app.utils.constants import (
    INITIAL_STATE,
    INSIGHT,
    PARENT_TYPE,
    POST,
    RELATIONSHIP_TYPES,
    SCHEDULED_POST,
    TRANSCRIPT,
)

logger = logging.getLogger(__name__)

TRANSCRIPT_FIELDS = ("source_type", "source_url", "file_path")
PUBLISH_FIELDS = ("platform",)

# statuses only the scheduling and publishing engines put a post into
ENGINE_OWNED_STATUSES = {
    POST: {"scheduling", "scheduled", "publishing", "published", "failed"},
}


@dataclass
class PipelineView:
    transcript: ContentEntity
    insights: list[ContentEntity] = field(default_factory=list)
    posts: list[ContentEntity] = field(default_factory=list)
    scheduled_posts: list[ContentEntity] = field(default_factory=list)


def _count_words(text: str | None) -> int | None:
    if not text:
        return None
    return len(text.split())


def get(db: Session, entity_id: uuid.UUID, content_type: str | None = None) -> ContentEntity:
    entity = db.get(ContentEntity, entity_id, populate_existing=True)
    if entity is None:
        raise NotFoundError(f"Content {entity_id} not found", id=str(entity_id))
    if content_type and entity.content_type != content_type:
        raise ValidationError(f"Content {entity_id} is a {entity.content_type}, expected {content_type}")
    return entity


def build_entity(db: Session, data: EntityCreate, clock: Clock | None = None) -> ContentEntity:
    """Validate and stage a new entity (and its edge) without committing."""
    now = resolve(clock).now()
    ctype = data.content_type
    status = data.status or INITIAL_STATE[ctype]
    ensure_known_status(ctype, status)
    if ctype == SCHEDULED_POST:
        raise ValidationError("scheduled_post records are written by scheduling a post, not created directly")
    if status in ENGINE_OWNED_STATUSES.get(ctype, ()):
        raise ValidationError(f"A {ctype} cannot be created as {status}; schedule or publish it instead")
    if data.scheduled_time is not None:
        raise ValidationError("scheduled_time is set by scheduling a post, not on create")

    parent = None
    if data.parent_id is not None:
        parent = db.get(ContentEntity, data.parent_id)
        if parent is None:
            raise ValidationError(f"Parent {data.parent_id} does not exist")
        expected = PARENT_TYPE.get(ctype)
        if parent.content_type != expected:
            raise ValidationError(
                f"A {ctype} must be parented to a {expected or 'nothing'}, got {parent.content_type}"
            )

    root_id = data.root_transcript_id
    if parent is not None:
        parent_root = parent.id if parent.content_type == TRANSCRIPT else parent.root_transcript_id
        if root_id is not None and root_id != parent_root:
            raise ValidationError("root_transcript_id does not match the parent's root transcript")
        root_id = parent_root
    if root_id is not None and ctype != TRANSCRIPT:
        root = db.get(ContentEntity, root_id)
        if root is None or root.content_type != TRANSCRIPT:
            raise ValidationError(f"root_transcript_id {root_id} does not reference a transcript")

    entity_id = data.id or uuid.uuid4()
    if ctype == TRANSCRIPT:
        if root_id is not None and root_id != entity_id:
            raise ValidationError("A transcript's root_transcript_id must be its own id")
        root_id = entity_id

    cls = ENTITY_CLASSES[ctype]
    entity = cls(
        id=entity_id,
        status=status,
        title=data.title,
        raw_content=data.raw_content,
        processed_content=data.processed_content,
        meta=data.metadata,
        parent_id=data.parent_id,
        root_transcript_id=root_id,
        word_count=data.word_count if data.word_count is not None else _count_words(
            data.processed_content or data.raw_content
        ),
        duration_seconds=data.duration_seconds,
        created_at=now,
        updated_at=now,
    )

    if ctype != TRANSCRIPT and any(getattr(data, name) for name in TRANSCRIPT_FIELDS):
        raise ValidationError(f"{ctype} does not carry transcript source fields")
    if ctype != POST and any(getattr(data, name) for name in PUBLISH_FIELDS):
        raise ValidationError(f"{ctype} does not carry publishing fields")

    if ctype == TRANSCRIPT:
        for name in TRANSCRIPT_FIELDS:
            setattr(entity, name, getattr(data, name))
    elif ctype == POST:
        entity.platform = data.platform.strip().lower() if data.platform else None
        entity.retry_count = 0

    db.add(entity)
    if parent is not None:
        db.add(
            ContentRelationship(
                parent_id=parent.id,
                child_id=entity.id,
                relationship_type=RELATIONSHIP_TYPES[(parent.content_type, ctype)],
                created_at=now,
            )
        )
    return entity


def create(db: Session, data: EntityCreate, clock: Clock | None = None) -> ContentEntity:
    try:
        entity = build_entity(db, data, clock)
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ValidationError(f"Could not create {data.content_type}: {e.orig}") from e
    except Exception:
        db.rollback()
        raise

    logger.info("Created %s %s (status=%s)", entity.content_type, entity.id, entity.status)
    return entity


def update_status(db: Session, entity_id: uuid.UUID, new_status: str, clock: Clock | None = None) -> ContentEntity:
    """Set a status without consulting the transition graph."""
    entity = get(db, entity_id)
    try:
        ensure_known_status(entity.content_type, new_status)
        entity.status = new_status
        entity.updated_at = resolve(clock).now()
        db.commit()
    except Exception:
        db.rollback()
        raise
    return entity


def compare_and_set(
    db: Session,
    entity_id: uuid.UUID,
    expected: str,
    target: str,
    clock: Clock | None = None,
    **values: Any,
) -> bool:
    """
    Move ``entity_id`` from ``expected`` to ``target`` in one UPDATE.

    Returns False when the row no longer holds ``expected``, which is how a
    losing concurrent writer finds out. Does not commit.
    """
    stmt = (
        update(content_table)
        .where(content_table.c.id == entity_id)
        .where(content_table.c.status == expected)
        .values(status=target, updated_at=resolve(clock).now(), **values)
    )
    res = db.execute(stmt)
    return res.rowcount == 1


def _apply_filter(q, flt: ContentFilter):
    if flt.content_type:
        q = q.where(content_table.c.content_type == flt.content_type)
    if flt.status:
        q = q.where(content_table.c.status == flt.status)
    if flt.platform:
        q = q.where(func.lower(content_table.c.platform) == flt.platform.strip().lower())
    if flt.parent_id:
        q = q.where(content_table.c.parent_id == flt.parent_id)
    if flt.root_transcript_id:
        q = q.where(content_table.c.root_transcript_id == flt.root_transcript_id)
    return q


def query(db: Session, flt: ContentFilter | None = None) -> list[ContentEntity]:
    flt = flt or ContentFilter()
    q = _apply_filter(select(ContentEntity), flt)
    q = q.order_by(desc(content_table.c.created_at), desc(content_table.c.id)).offset(flt.offset).limit(flt.limit)
    return list(db.execute(q).scalars().all())


def get_pipeline(db: Session, root_transcript_id: uuid.UUID) -> PipelineView:
    transcript = get(db, root_transcript_id, content_type=TRANSCRIPT)

    q = (
        select(ContentEntity)
        .where(content_table.c.root_transcript_id == root_transcript_id)
        .where(content_table.c.id != root_transcript_id)
        .order_by(asc(content_table.c.created_at), asc(content_table.c.id))
    )
    view = PipelineView(transcript=transcript)
    buckets = {INSIGHT: view.insights, POST: view.posts, SCHEDULED_POST: view.scheduled_posts}
    for entity in db.execute(q).scalars().all():
        bucket = buckets.get(entity.content_type)
        if bucket is not None:
            bucket.append(entity)
    return view


def descendant_ids(db: Session, entity_id: uuid.UUID) -> list[uuid.UUID]:
    """All ids reachable through parent_id links, breadth first, cycle safe."""
    seen = {entity_id}
    order: list[uuid.UUID] = []
    frontier = [entity_id]
    while frontier:
        rows = db.execute(
            select(content_table.c.id).where(content_table.c.parent_id.in_(frontier))
        ).scalars().all()
        frontier = []
        for child_id in rows:
            if child_id in seen:
                logger.warning("Cycle in parent chain at %s; not following it again", child_id)
                continue
            seen.add(child_id)
            order.append(child_id)
            frontier.append(child_id)
    return order


def delete_entity(db: Session, entity_id: uuid.UUID) -> list[uuid.UUID]:
    """Delete an entity, its descendants, their edges and jobs in one commit."""
    get(db, entity_id)
    try:
        ids = [entity_id] + descendant_ids(db, entity_id)
        db.execute(
            delete(ContentRelationship).where(
                ContentRelationship.parent_id.in_(ids) | ContentRelationship.child_id.in_(ids)
            )
        )
        db.execute(delete(ProcessingJob).where(ProcessingJob.content_id.in_(ids)))
        db.execute(delete(content_table).where(content_table.c.id.in_(ids)))
        db.commit()
    except Exception:
        db.rollback()
        raise

    for obj in list(db.identity_map.values()):
        if isinstance(obj, ContentEntity) and obj.id in ids:
            db.expunge(obj)
    logger.info("Deleted content %s and %d descendants", entity_id, len(ids) - 1)
    return ids


def add_relationship(
    db: Session,
    parent_id: uuid.UUID,
    child_id: uuid.UUID,
    relationship_type: str,
    clock: Clock | None = None,
) -> ContentRelationship:
    parent = get(db, parent_id)
    child = get(db, child_id)
    expected = RELATIONSHIP_TYPES.get((parent.content_type, child.content_type))
    if expected is None or expected != relationship_type:
        raise ValidationError(
            f"{relationship_type} cannot link a {parent.content_type} to a {child.content_type}"
        )

    edge = ContentRelationship(
        parent_id=parent_id,
        child_id=child_id,
        relationship_type=relationship_type,
        created_at=resolve(clock).now(),
    )
    db.add(edge)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ValidationError(f"Relationship {parent_id} -> {child_id} ({relationship_type}) already exists") from e
    return edge


def list_relationships(db: Session, entity_id: uuid.UUID) -> list[ContentRelationship]:
    q = (
        select(ContentRelationship)
        .where((ContentRelationship.parent_id == entity_id) | (ContentRelationship.child_id == entity_id))
        .order_by(asc(ContentRelationship.created_at), asc(ContentRelationship.id))
    )
    return list(db.execute(q).scalars().all())


def pipeline_stats(db: Session, root_transcript_id: uuid.UUID | None = None) -> dict[str, Any]:
    by_status = select(content_table.c.content_type, content_table.c.status, func.count())
    by_platform = (
        select(content_table.c.platform, func.count())
        .where(content_table.c.content_type == POST)
        .where(content_table.c.status == "scheduled")
    )
    if root_transcript_id is not None:
        by_status = by_status.where(content_table.c.root_transcript_id == root_transcript_id)
        by_platform = by_platform.where(content_table.c.root_transcript_id == root_transcript_id)

    counts: dict[str, dict[str, int]] = {}
    for ctype, status, n in db.execute(by_status.group_by(content_table.c.content_type, content_table.c.status)):
        counts.setdefault(ctype, {})[status] = n

    scheduled = {
        platform: n
        for platform, n in db.execute(by_platform.group_by(content_table.c.platform).order_by(content_table.c.platform))
    }
    return {"by_type": counts, "scheduled_by_platform": scheduled}
