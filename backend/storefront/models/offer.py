from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Float, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from storefront.db.base_class import Base
from storefront.core.offer_states import OfferStatus
import uuid

class Offer(Base):
    __tablename__ = "offers"

    id = Column(String, primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    listing_id = Column(String, ForeignKey("listings.id"), nullable=False)
    buyer_id = Column(String, ForeignKey("users.id"), nullable=False)
    initial_offer_amount = Column(Float, nullable=False)
    current_offer_amount = Column(Float, nullable=False)
    counter_offer_amount = Column(Float, nullable=True)
    status = Column(String, default=OfferStatus.PENDING.value, nullable=False)  # pending, countered, accepted, rejected
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    version = Column(Integer, default=1)  # Optimistic concurrency control

    # Relationships
    listing = relationship("Listing", back_populates="offers")
    buyer = relationship("User", foreign_keys=[buyer_id], back_populates="offers_made")
    messages = relationship(
        "OfferMessage",
        back_populates="offer",
        order_by="OfferMessage.position",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index('idx_offer_listing_status', 'listing_id', 'status'),
        Index('idx_offer_buyer_status', 'buyer_id', 'status'),
        Index('idx_offer_buyer_listing', 'buyer_id', 'listing_id'),
    )

class OfferMessage(Base):
    """Append-only negotiation log entry; system messages record transitions."""
    __tablename__ = "offer_messages"

    id = Column(String, primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    offer_id = Column(String, ForeignKey("offers.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False)
    sender_id = Column(String, ForeignKey("users.id"), nullable=True)
    message_text = Column(String, nullable=False)
    is_system_message = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    offer = relationship("Offer", back_populates="messages")

    __table_args__ = (
        Index('idx_offer_message_offer_position', 'offer_id', 'position', unique=True),
    )
