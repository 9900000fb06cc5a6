import logging

from app.config import get_settings
from app.database import SessionLocal
from app.logging_config import setup_logging
from app.services.publisher_worker import publish_due
from app.services.publishers import get_publishers

logger = logging.getLogger(__name__)

def main():
    setup_logging()
    db = SessionLocal()
    try:
        res = publish_due(db, get_publishers(), limit=get_settings().publish_batch_limit)
        logger.info("Publisher sweep: due=%(due)d published=%(published)d failed=%(failed)d skipped=%(skipped)d", res)
    finally:
        db.close()

if __name__ == "__main__":
    main()
