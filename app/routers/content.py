import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.content import (
    ContentFilter,
    ContentType,
    EntityCreate,
    EntityOut,
    PipelineOut,
    RelationshipCreate,
    RelationshipOut,
)
from app.services import content_store

router = APIRouter(prefix="/content", tags=["content"])


@router.post("", response_model=EntityOut, status_code=201)
def create(payload: EntityCreate, db: Session = Depends(get_db)):
    return content_store.create(db, payload)


@router.get("", response_model=list[EntityOut])
def list_content(
    db: Session = Depends(get_db),
    content_type: Optional[ContentType] = None,
    status: Optional[str] = None,
    platform: Optional[str] = None,
    parent_id: Optional[uuid.UUID] = None,
    root_transcript_id: Optional[uuid.UUID] = None,
    limit: int = Query(50, ge=1, le=1000),
    offset: int = Query(0, ge=0),
):
    flt = ContentFilter(
        content_type=content_type,
        status=status,
        platform=platform,
        parent_id=parent_id,
        root_transcript_id=root_transcript_id,
        limit=limit,
        offset=offset,
    )
    return content_store.query(db, flt)


@router.get("/{cid}", response_model=EntityOut)
def get_one(cid: uuid.UUID, db: Session = Depends(get_db)):
    return content_store.get(db, cid)


@router.get("/{cid}/pipeline", response_model=PipelineOut)
def pipeline(cid: uuid.UUID, db: Session = Depends(get_db)):
    return content_store.get_pipeline(db, cid)


@router.delete("/{cid}")
def delete(cid: uuid.UUID, db: Session = Depends(get_db)):
    ids = content_store.delete_entity(db, cid)
    return {"deleted": len(ids), "ids": [str(x) for x in ids]}


@router.get("/{cid}/relationships", response_model=list[RelationshipOut])
def relationships(cid: uuid.UUID, db: Session = Depends(get_db)):
    content_store.get(db, cid)
    return content_store.list_relationships(db, cid)


@router.post("/relationships", response_model=RelationshipOut, status_code=201)
def add_relationship(payload: RelationshipCreate, db: Session = Depends(get_db)):
    return content_store.add_relationship(db, payload.parent_id, payload.child_id, payload.relationship_type)
