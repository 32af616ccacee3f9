from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Any, List

from storefront.api import deps
from storefront.core.utils import utcnow
from storefront.schemas.cart import ReservedCartEntry
from storefront.models.reservation import Reservation
from storefront.models.user import User

router = APIRouter()

@router.get("/pending", response_model=List[ReservedCartEntry])
def get_pending_items(
    *,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    """
    Items reserved for the current user by accepted offers, at the negotiated price.
    Expired reservations are never returned, even before the sweeper removes them.
    """
    reservations = (
        db.query(Reservation)
        .filter(
            Reservation.user_id == current_user.id,
            Reservation.expires_at > utcnow(),
        )
        .order_by(Reservation.created_at.desc())
        .all()
    )

    return [
        {
            "id": reservation.id,
            "listing_id": reservation.listing_id,
            "offer_id": reservation.offer_id,
            "title": reservation.listing_title,
            "image": reservation.listing_image,
            "price": reservation.price,
            "currency": reservation.currency,
            "is_locked": True,
            "created_at": reservation.created_at,
            "expires_at": reservation.expires_at,
        }
        for reservation in reservations
    ]
