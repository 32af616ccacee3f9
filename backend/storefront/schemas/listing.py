from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

class ListingBase(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    condition: Optional[str] = None
    price: float = Field(..., gt=0)
    currency: str = "USD"
    image: Optional[str] = None

class ListingCreate(ListingBase):
    pass

class ListingResponse(ListingBase):
    id: str
    seller_id: str
    disabled: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class ListingSummary(BaseModel):
    """Listing fields embedded in offer payloads."""
    id: str
    title: str
    price: float
    currency: str
    condition: Optional[str] = None
    image: Optional[str] = None
    disabled: bool

    class Config:
        from_attributes = True
