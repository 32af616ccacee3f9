from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Float, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from storefront.db.base_class import Base
import uuid

class Listing(Base):
    __tablename__ = "listings"

    id = Column(String, primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    title = Column(String, index=True, nullable=False)
    description = Column(String, nullable=True)
    condition = Column(String, nullable=True)
    price = Column(Float, nullable=False)
    currency = Column(String, default="USD")
    image = Column(String, nullable=True)
    # Single unit goods: disabled once reserved by an accepted offer or sold
    disabled = Column(Boolean, default=False, nullable=False)
    seller_id = Column(String, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    seller = relationship("User", back_populates="listings")
    offers = relationship("Offer", back_populates="listing")

    __table_args__ = (
        Index('idx_listing_disabled', 'disabled'),
        Index('idx_listing_seller_disabled', 'seller_id', 'disabled'),
    )
