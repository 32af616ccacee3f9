import math
from pydantic import BaseModel, validator, Field
from typing import Optional, List
from datetime import datetime

from storefront.core.config import settings
from storefront.core.offer_states import OfferStatus
from storefront.schemas.listing import ListingSummary

def _check_amount(v: float) -> float:
    if not math.isfinite(v) or v <= 0:
        raise ValueError('Offer amount must be positive')
    if v > settings.OFFER_MAX_AMOUNT:
        raise ValueError(f'Offer amount cannot exceed {settings.OFFER_MAX_AMOUNT:,.0f}')
    return v

class OfferCreate(BaseModel):
    listing_id: str
    amount: float
    message: Optional[str] = Field(None, max_length=2000)

    @validator('amount')
    def amount_must_be_valid(cls, v):
        return _check_amount(v)

class CounterOfferRequest(BaseModel):
    amount: float
    message: Optional[str] = Field(None, max_length=2000)

    @validator('amount')
    def amount_must_be_valid(cls, v):
        return _check_amount(v)

class RejectOfferRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=2000)

class OfferMessageResponse(BaseModel):
    sender_id: Optional[str] = None
    message_text: str
    created_at: Optional[datetime] = None
    is_system_message: bool

    class Config:
        from_attributes = True

class OfferResponse(BaseModel):
    id: str
    listing_id: str
    buyer_id: str
    buyer_name: Optional[str] = None
    initial_offer_amount: float
    current_offer_amount: float
    counter_offer_amount: Optional[float] = None
    status: OfferStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int
    messages: List[OfferMessageResponse] = []
    listing: Optional[ListingSummary] = None

    class Config:
        from_attributes = True
