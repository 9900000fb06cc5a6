from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.approval import BulkStatusRequest, ItemResultOut, TransitionRequest
from app.schemas.content import EntityOut
from app.services import pipeline
from app.services.results import ItemResult

router = APIRouter(prefix="/transitions", tags=["transitions"])


def _out(results: list[ItemResult]) -> list[ItemResultOut]:
    return [ItemResultOut(id=r.id, ok=r.ok, status=r.status, error=r.error, detail=r.detail) for r in results]


@router.post("/bulk", response_model=list[ItemResultOut])
def bulk(payload: BulkStatusRequest, db: Session = Depends(get_db)):
    return _out(pipeline.set_status_bulk(db, payload.content_ids, payload.target_status))


@router.post("/{cid}", response_model=EntityOut)
def transition(cid: uuid.UUID, payload: TransitionRequest, db: Session = Depends(get_db)):
    return pipeline.transition(db, cid, payload.target_status).entity
