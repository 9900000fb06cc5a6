import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.services import publisher_worker
from app.services.publishers import get_publishers

router = APIRouter(prefix="/publisher", tags=["publisher"])


def _outcome(o: publisher_worker.PublishOutcome) -> dict:
    return {
        "post_id": str(o.post_id),
        "status": o.status,
        "external_post_id": o.external_post_id,
        "error": o.error,
    }


@router.get("/due")
def due(db: Session = Depends(get_db), limit: int = Query(20, ge=1, le=200)):
    return {"post_ids": [str(x) for x in publisher_worker.fetch_due(db, limit=limit)]}


@router.post("/run")
def run(
    db: Session = Depends(get_db),
    publishers=Depends(get_publishers),
    limit: int = Query(50, ge=1, le=500),
):
    res = publisher_worker.publish_due(db, publishers, limit=limit)
    return {**res, "results": [_outcome(o) for o in res["results"]]}


@router.post("/{post_id}/publish")
def publish(post_id: uuid.UUID, db: Session = Depends(get_db), publishers=Depends(get_publishers)):
    return _outcome(publisher_worker.publish_post(db, post_id, publishers))


@router.post("/{post_id}/retry")
def retry(post_id: uuid.UUID, db: Session = Depends(get_db), publishers=Depends(get_publishers)):
    return _outcome(publisher_worker.retry(db, post_id, publishers))
