from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

class MessageCreate(BaseModel):
    recipient_id: str
    message_text: str = Field(..., min_length=1, max_length=5000)
    listing_id: Optional[str] = None

class MessageResponse(BaseModel):
    id: str
    conversation_id: str
    sender_id: str
    recipient_id: str
    listing_id: Optional[str] = None
    message_text: str
    is_read: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class ConversationResponse(BaseModel):
    id: str
    other_user_id: Optional[str] = None
    other_user_name: str
    listing_id: Optional[str] = None
    listing_title: Optional[str] = None
    listing_image: Optional[str] = None
    last_message: Optional[str] = None
    last_message_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    unread_count: int = 0

class UnreadCountResponse(BaseModel):
    unread_count: int
