from sqlalchemy import Column, String, DateTime, ForeignKey, Float, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from storefront.db.base_class import Base
import uuid

class Reservation(Base):
    """
    Pending cart item created when an offer is accepted. Locks the listing
    for the buyer at the negotiated price until it is purchased or expires.
    """
    __tablename__ = "reservations"

    id = Column(String, primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id"), nullable=False)
    # One reservation per listing and per offer
    listing_id = Column(String, ForeignKey("listings.id"), nullable=False, unique=True)
    offer_id = Column(String, ForeignKey("offers.id"), nullable=False, unique=True)
    price = Column(Float, nullable=False)
    currency = Column(String, default="USD")
    listing_title = Column(String, nullable=False, default="")
    listing_image = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)

    # Relationships
    user = relationship("User", back_populates="reservations")
    listing = relationship("Listing")
    offer = relationship("Offer")

    __table_args__ = (
        Index('idx_reservation_user_expires', 'user_id', 'expires_at'),
    )
