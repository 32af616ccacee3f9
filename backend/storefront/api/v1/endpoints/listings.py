from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import Any, List, Optional
import logging

from storefront.api import deps
from storefront.schemas.listing import ListingCreate, ListingResponse
from storefront.models.listing import Listing
from storefront.models.user import User

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("/", response_model=ListingResponse, status_code=status.HTTP_201_CREATED)
def create_listing(
    *,
    db: Session = Depends(deps.get_db),
    listing_in: ListingCreate,
    current_user: User = Depends(deps.get_current_seller),
) -> Any:
    """
    Publish a new listing.
    """
    db_listing = Listing(
        **listing_in.dict(),
        seller_id=current_user.id,
    )

    db.add(db_listing)
    db.commit()
    db.refresh(db_listing)

    logger.info(f"Listing {db_listing.id} created by seller {current_user.id}")
    return db_listing

@router.get("/", response_model=List[ListingResponse])
def get_listings(
    *,
    db: Session = Depends(deps.get_db),
    skip: int = 0,
    limit: int = 100,
    include_disabled: bool = Query(False, description="Include reserved or sold listings"),
    min_price: Optional[float] = Query(None, description="Minimum price"),
    max_price: Optional[float] = Query(None, description="Maximum price"),
    seller_id: Optional[str] = Query(None, description="Seller id"),
) -> Any:
    """
    Browse listings with optional filters.
    """
    query = db.query(Listing)

    if not include_disabled:
        query = query.filter(Listing.disabled.is_(False))

    if min_price is not None:
        query = query.filter(Listing.price >= min_price)

    if max_price is not None:
        query = query.filter(Listing.price <= max_price)

    if seller_id:
        query = query.filter(Listing.seller_id == seller_id)

    query = query.order_by(Listing.created_at.desc())

    return query.offset(skip).limit(limit).all()

@router.get("/{listing_id}", response_model=ListingResponse)
def get_listing(
    *,
    db: Session = Depends(deps.get_db),
    listing_id: str,
) -> Any:
    """
    Get a listing by id.
    """
    listing = db.query(Listing).filter(Listing.id == listing_id).first()
    if not listing:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Listing not found",
        )

    return listing
