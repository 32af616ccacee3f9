# storefront/tasks/reservations.py
from celery import shared_task
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

import storefront.worker  # noqa: F401
from storefront.core.config import settings
from storefront.core.utils import utcnow
from storefront.db.session import build_engine
from storefront.models.listing import Listing
from storefront.models.reservation import Reservation

logger = logging.getLogger(__name__)

def get_db_session() -> Session:
    from sqlalchemy.orm import sessionmaker

    engine = build_engine(settings.DATABASE_URL)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    return SessionLocal()

def expire_reservations(db: Session, now: Optional[datetime] = None) -> List[str]:
    """
    Delete reservations past their expiry and put their listings back on sale.
    Clients stop showing a locked item as soon as the pending cart endpoint
    stops returning it.
    """
    now = now or utcnow()
    expired = db.query(Reservation).filter(Reservation.expires_at < now).all()

    expired_ids = []
    listing_ids = []
    for reservation in expired:
        expired_ids.append(reservation.id)
        listing_ids.append(reservation.listing_id)
        logger.info(
            f"Reservation {reservation.id} for listing {reservation.listing_id} "
            f"(offer {reservation.offer_id}) expired"
        )
        db.delete(reservation)

    if listing_ids:
        db.query(Listing).filter(Listing.id.in_(listing_ids)).update(
            {Listing.disabled: False}, synchronize_session=False
        )

    db.commit()
    return expired_ids

@shared_task(bind=True, name="storefront.tasks.reservations.expire_reservations_task")
def expire_reservations_task(self):
    """Periodic task removing expired reservations"""
    db = get_db_session()
    try:
        expired = expire_reservations(db)
        if not expired:
            logger.info("No expired reservations to process")
        return f"Expired {len(expired)} reservations"
    except Exception as e:
        db.rollback()
        logger.error(f"Error expiring reservations: {str(e)}")
        retry_delay = 60 * (2 ** self.request.retries)
        raise self.retry(exc=e, countdown=retry_delay)
    finally:
        db.close()
