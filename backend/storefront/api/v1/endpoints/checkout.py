from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import Any, List, Optional, Tuple
import logging
import uuid
from urllib.parse import urlencode

from storefront.api import deps
from storefront.core.config import settings
from storefront.core.utils import utcnow
from storefront.schemas.checkout import (
    CheckoutRequest,
    CheckoutSessionResponse,
    CompleteCheckoutRequest,
    OrderResponse,
    ProviderCaptureRequest,
    ProviderOrderResponse,
)
from storefront.models.listing import Listing
from storefront.models.order import Order, OrderItem
from storefront.models.reservation import Reservation
from storefront.models.user import User

logger = logging.getLogger(__name__)

router = APIRouter()

PAYMENT_REDIRECT = "redirect"
PAYMENT_PROVIDER_ORDER = "provider_order"

def build_order_items(db: Session, checkout_in: CheckoutRequest, user: Optional[User]) -> Tuple[List[OrderItem], float, str]:
    """
    Price every requested line. A line reserved for the caller by an accepted
    offer uses the negotiated price, anything else the listing price.
    """
    listing_ids = list(dict.fromkeys(item.listing_id for item in checkout_in.items))
    listings = {
        listing.id: listing
        for listing in db.query(Listing).filter(Listing.id.in_(listing_ids)).all()
    }

    reservations = {}
    if user is not None:
        now = utcnow()
        reservations = {
            reservation.listing_id: reservation
            for reservation in db.query(Reservation).filter(
                Reservation.user_id == user.id,
                Reservation.listing_id.in_(listing_ids),
                Reservation.expires_at > now,
            ).all()
        }

    items: List[OrderItem] = []
    seen = set()
    for item in checkout_in.items:
        if item.listing_id in seen:
            continue
        seen.add(item.listing_id)

        listing = listings.get(item.listing_id)
        if not listing:
            logger.warning(f"Listing not found during checkout: {item.listing_id}")
            continue

        reservation = reservations.get(listing.id)
        if listing.disabled and reservation is None:
            logger.warning(f"Listing {listing.id} is no longer available, skipping")
            continue

        items.append(OrderItem(
            listing_id=listing.id,
            listing_title=listing.title,
            price=reservation.price if reservation else listing.price,
            currency=listing.currency,
            quantity=1,
            offer_id=reservation.offer_id if reservation else None,
        ))

    if not items:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No valid items to checkout",
        )

    total = sum(item.price * item.quantity for item in items)
    return items, total, items[0].currency

def create_pending_order(db: Session, checkout_in: CheckoutRequest, user: Optional[User], payment_method: str) -> Order:
    items, total, currency = build_order_items(db, checkout_in, user)
    shipping = checkout_in.shipping_address

    order = Order(
        user_id=user.id if user else None,
        payment_method=payment_method,
        provider_reference=uuid.uuid4().hex,
        total_amount=total,
        currency=currency,
        status="pending",
        shipping_full_name=shipping.full_name,
        shipping_line1=shipping.line1,
        shipping_line2=shipping.line2,
        shipping_city=shipping.city,
        shipping_state=shipping.state,
        shipping_postal_code=shipping.postal_code,
        shipping_country=shipping.country,
        created_at=utcnow(),
        items=items,
    )
    db.add(order)
    db.commit()
    db.refresh(order)
    return order

def checkout_redirect_url(session_id: str) -> str:
    """Hosted payment page for the session, told where to send the buyer back."""
    query = urlencode({
        "success_url": f"{settings.CHECKOUT_SUCCESS_URL}?session_id={session_id}",
        "cancel_url": settings.CHECKOUT_CANCEL_URL,
    })
    return f"{settings.CHECKOUT_REDIRECT_URL.format(session_id=session_id)}?{query}"

def complete_order(db: Session, order: Order, capture_id: Optional[str] = None) -> Order:
    """
    Mark the order paid, take its listings off sale and release their reservations.
    Completing an already completed order returns it unchanged.
    """
    if order.status == "completed":
        logger.info(f"Order {order.id} already processed")
        return order

    listing_ids = [item.listing_id for item in order.items]
    try:
        order.status = "completed"
        order.completed_at = utcnow()
        if capture_id:
            order.capture_id = capture_id

        db.query(Listing).filter(Listing.id.in_(listing_ids)).update(
            {Listing.disabled: True}, synchronize_session=False
        )
        db.query(Reservation).filter(Reservation.listing_id.in_(listing_ids)).delete(
            synchronize_session=False
        )
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error completing order {order.id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error while completing the order",
        )

    db.refresh(order)
    logger.info(f"Order {order.id} completed, disabled {len(listing_ids)} listings")
    return order

def ensure_order_owner(order: Order, user: Optional[User]) -> None:
    """Orders placed while signed in can only be finished by the same user."""
    if order.user_id and (user is None or user.id != order.user_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not enough permissions",
        )

def get_order_by_reference(db: Session, reference: str, payment_method: str) -> Order:
    order = db.query(Order).filter(
        Order.provider_reference == reference,
        Order.payment_method == payment_method,
    ).first()
    if not order:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Checkout not found",
        )
    return order

@router.post("/", response_model=CheckoutSessionResponse)
def create_checkout_session(
    *,
    db: Session = Depends(deps.get_db),
    checkout_in: CheckoutRequest,
    current_user: Optional[User] = Depends(deps.get_optional_user),
) -> Any:
    """
    Start a redirect checkout. The buyer pays on the provider's page and
    returns with the session id.
    """
    order = create_pending_order(db, checkout_in, current_user, PAYMENT_REDIRECT)
    session_id = order.provider_reference

    logger.info(f"Created checkout session {session_id} for {len(order.items)} items, total {order.total_amount}")

    return {
        "session_id": session_id,
        "redirect_url": checkout_redirect_url(session_id),
        "total_amount": order.total_amount,
        "currency": order.currency,
    }

@router.post("/complete", response_model=OrderResponse)
def complete_checkout(
    *,
    db: Session = Depends(deps.get_db),
    complete_in: CompleteCheckoutRequest,
    current_user: Optional[User] = Depends(deps.get_optional_user),
) -> Any:
    """
    Finish a redirect checkout after the provider confirmed payment.
    """
    order = get_order_by_reference(db, complete_in.session_id, PAYMENT_REDIRECT)
    ensure_order_owner(order, current_user)
    return complete_order(db, order)

@router.post("/provider/create", response_model=ProviderOrderResponse)
def create_provider_order(
    *,
    db: Session = Depends(deps.get_db),
    checkout_in: CheckoutRequest,
    current_user: Optional[User] = Depends(deps.get_optional_user),
) -> Any:
    """
    Create an order the payment provider's embedded button will approve.
    """
    order = create_pending_order(db, checkout_in, current_user, PAYMENT_PROVIDER_ORDER)

    logger.info(f"Created provider order {order.provider_reference}, total {order.total_amount}")

    return {
        "order_id": order.provider_reference,
        "total_amount": order.total_amount,
        "currency": order.currency,
    }

@router.post("/provider/capture", response_model=OrderResponse)
def capture_provider_order(
    *,
    db: Session = Depends(deps.get_db),
    capture_in: ProviderCaptureRequest,
    current_user: Optional[User] = Depends(deps.get_optional_user),
) -> Any:
    """
    Capture an approved provider order. Capturing twice returns the existing order.
    """
    order = get_order_by_reference(db, capture_in.order_id, PAYMENT_PROVIDER_ORDER)
    ensure_order_owner(order, current_user)
    return complete_order(db, order, capture_id=uuid.uuid4().hex)
