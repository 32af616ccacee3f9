from pydantic import BaseModel, Field, validator
from typing import Optional, List
from datetime import datetime

class ShippingAddress(BaseModel):
    full_name: str
    line1: str
    line2: Optional[str] = None
    city: str
    state: str
    postal_code: str
    country: str

    @validator('full_name', 'line1', 'city', 'state', 'postal_code', 'country')
    def required_fields_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError('Please fill in all required shipping fields')
        return v.strip()

class CheckoutItem(BaseModel):
    listing_id: str
    quantity: int = Field(1, ge=1, le=1)

class CheckoutRequest(BaseModel):
    items: List[CheckoutItem]
    shipping_address: ShippingAddress

    @validator('items')
    def cart_not_empty(cls, v):
        if not v:
            raise ValueError('Cart is empty')
        return v

class CheckoutSessionResponse(BaseModel):
    session_id: str
    redirect_url: str
    total_amount: float
    currency: str

class CompleteCheckoutRequest(BaseModel):
    session_id: str = Field(..., min_length=1)

class ProviderOrderResponse(BaseModel):
    order_id: str
    total_amount: float
    currency: str

class ProviderCaptureRequest(BaseModel):
    order_id: str = Field(..., min_length=1)

class OrderItemResponse(BaseModel):
    listing_id: str
    listing_title: str
    price: float
    currency: str
    quantity: int
    offer_id: Optional[str] = None

    class Config:
        from_attributes = True

class OrderResponse(BaseModel):
    id: str
    payment_method: str
    provider_reference: str
    capture_id: Optional[str] = None
    status: str
    total_amount: float
    currency: str
    items: List[OrderItemResponse] = []
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True
