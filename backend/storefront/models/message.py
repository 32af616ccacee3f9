from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from storefront.db.base_class import Base
import uuid

class Conversation(Base):
    __tablename__ = "conversations"

    id = Column(String, primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    # Participants are stored ordered (user_one_id < user_two_id)
    user_one_id = Column(String, ForeignKey("users.id"), nullable=False)
    user_two_id = Column(String, ForeignKey("users.id"), nullable=False)
    listing_id = Column(String, ForeignKey("listings.id"), nullable=True)
    last_message = Column(String, nullable=True)
    last_message_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user_one = relationship("User", foreign_keys=[user_one_id])
    user_two = relationship("User", foreign_keys=[user_two_id])
    listing = relationship("Listing")
    messages = relationship("Message", back_populates="conversation", order_by="Message.created_at")

    __table_args__ = (
        Index('idx_conversation_participants', 'user_one_id', 'user_two_id', 'listing_id'),
        Index('idx_conversation_last_message_at', 'last_message_at'),
    )

    def other_participant_id(self, user_id: str) -> str:
        return self.user_two_id if self.user_one_id == user_id else self.user_one_id

    def has_participant(self, user_id: str) -> bool:
        return user_id in (self.user_one_id, self.user_two_id)

class Message(Base):
    __tablename__ = "messages"

    id = Column(String, primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    conversation_id = Column(String, ForeignKey("conversations.id"), nullable=False)
    sender_id = Column(String, ForeignKey("users.id"), nullable=False)
    recipient_id = Column(String, ForeignKey("users.id"), nullable=False)
    listing_id = Column(String, ForeignKey("listings.id"), nullable=True)
    message_text = Column(String, nullable=False)
    is_read = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    conversation = relationship("Conversation", back_populates="messages")
    sender = relationship("User", foreign_keys=[sender_id])
    recipient = relationship("User", foreign_keys=[recipient_id])

    __table_args__ = (
        Index('idx_message_conversation', 'conversation_id'),
        Index('idx_message_recipient_read', 'recipient_id', 'is_read'),
        Index('idx_message_created_at', 'created_at'),
    )
