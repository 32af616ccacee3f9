from fastapi import APIRouter, Body, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from typing import Any, Dict, List, Optional
from datetime import timedelta
from contextlib import contextmanager
import logging

from storefront.api import deps
from storefront.core.config import settings
from storefront.core.offer_states import (
    ACTIVE_STATUSES,
    InvalidTransition,
    OfferAction,
    OfferRole,
    OfferStatus,
    next_status,
)
from storefront.core.utils import format_money, utcnow
from storefront.schemas.offer import (
    CounterOfferRequest,
    OfferCreate,
    OfferResponse,
    RejectOfferRequest,
)
from storefront.models.listing import Listing
from storefront.models.offer import Offer, OfferMessage
from storefront.models.reservation import Reservation
from storefront.models.user import User
from storefront.tasks.notifications import notify_offer_event

logger = logging.getLogger(__name__)

router = APIRouter()

ACTIVE_STATUS_VALUES = [s.value for s in ACTIVE_STATUSES]

@contextmanager
def transaction_scope(db: Session):
    """Commit on success, roll back on any error."""
    try:
        yield
        db.commit()
    except HTTPException:
        db.rollback()
        raise
    except IntegrityError as e:
        db.rollback()
        logger.error(f"Integrity error in offer transaction: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="The offer was modified concurrently. Please reload and try again.",
        )
    except Exception as e:
        db.rollback()
        logger.error(f"Error in offer transaction: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error while processing the offer",
        )

def append_message(offer: Offer, sender_id: Optional[str], text: str, is_system: bool = False) -> OfferMessage:
    """Append to the offer's negotiation log, keeping insertion order."""
    message = OfferMessage(
        sender_id=sender_id,
        message_text=text,
        is_system_message=is_system,
        position=len(offer.messages),
        created_at=utcnow(),
    )
    offer.messages.append(message)
    return message

def to_response(offer: Offer) -> Dict[str, Any]:
    listing = offer.listing
    return {
        "id": offer.id,
        "listing_id": offer.listing_id,
        "buyer_id": offer.buyer_id,
        "buyer_name": offer.buyer.full_name if offer.buyer else None,
        "initial_offer_amount": offer.initial_offer_amount,
        "current_offer_amount": offer.current_offer_amount,
        "counter_offer_amount": offer.counter_offer_amount,
        "status": offer.status,
        "created_at": offer.created_at,
        "updated_at": offer.updated_at,
        "version": offer.version,
        "messages": offer.messages,
        "listing": listing,
    }

def notification_data(offer: Offer, **extra) -> Dict[str, Any]:
    data = {
        "offer_id": offer.id,
        "listing_id": offer.listing_id,
        "listing_title": offer.listing.title if offer.listing else None,
        "currency": offer.listing.currency if offer.listing else settings.DEFAULT_CURRENCY,
        "amount": offer.current_offer_amount,
        "counter_amount": offer.counter_offer_amount,
    }
    data.update(extra)
    return data

def get_offer_or_404(db: Session, offer_id: str, for_update: bool = False) -> Offer:
    query = db.query(Offer).filter(Offer.id == offer_id)
    if for_update:
        query = query.with_for_update()
    offer = query.first()
    if not offer:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Offer not found",
        )
    return offer

def role_for(offer: Offer, user: User) -> OfferRole:
    """Which side of the negotiation the user is on."""
    if offer.buyer_id == user.id:
        return OfferRole.BUYER
    if offer.listing is not None and offer.listing.seller_id == user.id:
        return OfferRole.SELLER
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="You are not a party to this offer",
    )

def transition(offer: Offer, action: OfferAction, role: OfferRole) -> OfferStatus:
    try:
        target = next_status(offer.status, action, role)
    except InvalidTransition as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

    offer.status = target.value
    offer.updated_at = utcnow()
    offer.version += 1
    return target

@router.post("/", response_model=OfferResponse, status_code=status.HTTP_201_CREATED)
def create_offer(
    *,
    db: Session = Depends(deps.get_db),
    offer_in: OfferCreate,
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    """
    Submit a new offer on a listing.
    """
    # Lock the listing row so two submissions cannot both pass the duplicate check
    listing = db.query(Listing).filter(Listing.id == offer_in.listing_id).with_for_update().first()
    if not listing:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Listing not found",
        )

    if listing.disabled:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="This listing is no longer available",
        )

    if listing.seller_id == current_user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot make an offer on your own listing",
        )

    existing_offer = db.query(Offer).filter(
        Offer.listing_id == listing.id,
        Offer.buyer_id == current_user.id,
        Offer.status.in_(ACTIVE_STATUS_VALUES),
    ).first()

    if existing_offer:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You already have an active offer on this listing",
        )

    now = utcnow()
    with transaction_scope(db):
        offer = Offer(
            listing_id=listing.id,
            buyer_id=current_user.id,
            initial_offer_amount=offer_in.amount,
            current_offer_amount=offer_in.amount,
            status=OfferStatus.PENDING.value,
            created_at=now,
            updated_at=now,
            version=1,
        )
        db.add(offer)

        if offer_in.message and offer_in.message.strip():
            append_message(offer, current_user.id, offer_in.message.strip())
        append_message(
            offer,
            current_user.id,
            f"Offer of {format_money(offer_in.amount, listing.currency)} submitted",
            is_system=True,
        )

    db.refresh(offer)
    logger.info(f"Offer {offer.id} submitted on listing {listing.id}: {offer.current_offer_amount}")

    notify_offer_event(
        listing.seller_id,
        "submitted",
        notification_data(offer, buyer_name=current_user.full_name, message=offer_in.message),
    )

    return to_response(offer)

@router.get("/", response_model=List[OfferResponse])
def get_my_offers(
    *,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
    status_filter: Optional[OfferStatus] = Query(None, alias="status", description="Offer status"),
) -> Any:
    """
    Offers made by the current user, most recently updated first.
    """
    query = db.query(Offer).filter(Offer.buyer_id == current_user.id)

    if status_filter:
        query = query.filter(Offer.status == status_filter.value)

    offers = query.order_by(Offer.updated_at.desc()).all()
    return [to_response(offer) for offer in offers]

@router.get("/listing/{listing_id}", response_model=List[OfferResponse])
def get_offers_for_listing(
    *,
    db: Session = Depends(deps.get_db),
    listing_id: str,
    current_user: User = Depends(deps.get_current_seller),
    status_filter: Optional[OfferStatus] = Query(None, alias="status", description="Offer status"),
) -> Any:
    """
    Offers received on one of the seller's listings.
    """
    listing = db.query(Listing).filter(Listing.id == listing_id).first()
    if not listing:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Listing not found",
        )

    if listing.seller_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the seller can view offers on this listing",
        )

    query = db.query(Offer).filter(Offer.listing_id == listing_id)
    if status_filter:
        query = query.filter(Offer.status == status_filter.value)

    offers = query.order_by(Offer.updated_at.desc()).all()
    return [to_response(offer) for offer in offers]

@router.get("/{offer_id}", response_model=OfferResponse)
def get_offer(
    *,
    db: Session = Depends(deps.get_db),
    offer_id: str,
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    """
    Get an offer by id.
    """
    offer = get_offer_or_404(db, offer_id)
    role_for(offer, current_user)
    return to_response(offer)

@router.put("/{offer_id}/counter", response_model=OfferResponse)
def counter_offer(
    *,
    db: Session = Depends(deps.get_db),
    offer_id: str,
    counter_in: CounterOfferRequest,
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    """
    Seller answers an active offer with a counter amount.
    """
    with transaction_scope(db):
        offer = get_offer_or_404(db, offer_id, for_update=True)
        role = role_for(offer, current_user)
        if role != OfferRole.SELLER:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only the seller can counter an offer",
            )

        transition(offer, OfferAction.COUNTER, role)
        offer.counter_offer_amount = counter_in.amount

        append_message(
            offer,
            current_user.id,
            f"Counter offer of {format_money(counter_in.amount, offer.listing.currency)} submitted",
            is_system=True,
        )
        if counter_in.message and counter_in.message.strip():
            append_message(offer, current_user.id, counter_in.message.strip())

    db.refresh(offer)
    logger.info(f"Counter offer on {offer.id}: {counter_in.amount}")

    notify_offer_event(offer.buyer_id, "countered", notification_data(offer, message=counter_in.message))

    return to_response(offer)

@router.put("/{offer_id}/accept", response_model=OfferResponse)
def accept_offer(
    *,
    db: Session = Depends(deps.get_db),
    offer_id: str,
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    """
    Accept an offer. The seller may accept a pending or countered offer,
    the buyer may only accept a counter. The listing is reserved for the buyer.
    """
    auto_rejected: List[Offer] = []

    with transaction_scope(db):
        offer = get_offer_or_404(db, offer_id, for_update=True)
        role = role_for(offer, current_user)
        previous_status = offer.status

        transition(offer, OfferAction.ACCEPT, role)

        # Buyer accepting a counter agrees to the seller's amount
        if role == OfferRole.BUYER and previous_status == OfferStatus.COUNTERED.value:
            offer.current_offer_amount = offer.counter_offer_amount

        listing = db.query(Listing).filter(Listing.id == offer.listing_id).with_for_update().first()
        if not listing:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Listing not found",
            )

        if listing.disabled:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="This listing is no longer available",
            )

        existing = db.query(Reservation).filter(Reservation.listing_id == listing.id).first()
        if existing:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="This listing is already reserved",
            )

        text = (
            f"Counter offer of {format_money(offer.current_offer_amount, listing.currency)} accepted"
            if role == OfferRole.BUYER
            else f"Offer of {format_money(offer.current_offer_amount, listing.currency)} accepted"
        )
        append_message(offer, current_user.id, text, is_system=True)

        # Reserve the listing for the buyer at the agreed price
        now = utcnow()
        listing.disabled = True
        db.add(Reservation(
            user_id=offer.buyer_id,
            listing_id=listing.id,
            offer_id=offer.id,
            price=offer.current_offer_amount,
            currency=listing.currency,
            listing_title=listing.title,
            listing_image=listing.image,
            created_at=now,
            expires_at=now + timedelta(hours=settings.RESERVATION_HOURS),
        ))

        # Every other active offer on this listing loses
        auto_rejected = db.query(Offer).filter(
            Offer.listing_id == listing.id,
            Offer.id != offer.id,
            Offer.status.in_(ACTIVE_STATUS_VALUES),
        ).with_for_update().all()

        for other in auto_rejected:
            transition(other, OfferAction.REJECT, OfferRole.SELLER)
            append_message(other, None, "Offer rejected: another offer was accepted", is_system=True)

    db.refresh(offer)
    logger.info(f"Offer {offer.id} accepted by {role.value}, listing {offer.listing_id} reserved for {offer.buyer_id}")
    if auto_rejected:
        logger.info(f"Auto-rejected {len(auto_rejected)} other offers on listing {offer.listing_id}")

    notify_offer_event(offer.buyer_id, "accepted", notification_data(offer, is_buyer=True))
    if role == OfferRole.BUYER:
        notify_offer_event(offer.listing.seller_id, "accepted", notification_data(offer, is_buyer=False))
    for other in auto_rejected:
        notify_offer_event(other.buyer_id, "auto_rejected", notification_data(other))

    return to_response(offer)

@router.put("/{offer_id}/reject", response_model=OfferResponse)
def reject_offer(
    *,
    db: Session = Depends(deps.get_db),
    offer_id: str,
    reject_in: Optional[RejectOfferRequest] = Body(None),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    """
    Reject an active offer (buyer or seller). The buyer may submit a new offer afterwards.
    """
    reason = reject_in.reason.strip() if reject_in and reject_in.reason else None

    with transaction_scope(db):
        offer = get_offer_or_404(db, offer_id, for_update=True)
        role = role_for(offer, current_user)

        transition(offer, OfferAction.REJECT, role)

        # Release any reservation tied to this offer
        db.query(Reservation).filter(Reservation.offer_id == offer.id).delete(synchronize_session=False)

        append_message(offer, current_user.id, "Offer rejected", is_system=True)
        if reason:
            append_message(offer, current_user.id, reason)

    db.refresh(offer)
    logger.info(f"Offer {offer.id} rejected by {role.value}")

    recipient = offer.listing.seller_id if role == OfferRole.BUYER else offer.buyer_id
    notify_offer_event(recipient, "rejected", notification_data(offer, message=reason))

    return to_response(offer)
