from pydantic import BaseModel
from typing import Optional
from datetime import datetime

class ReservedCartEntry(BaseModel):
    id: str
    listing_id: str
    offer_id: str
    title: str
    image: Optional[str] = None
    price: float
    currency: str
    is_locked: bool = True
    created_at: Optional[datetime] = None
    expires_at: datetime
