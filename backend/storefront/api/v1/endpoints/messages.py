from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import Any, List, Optional
import logging

from storefront.api import deps
from storefront.core.utils import utcnow
from storefront.schemas.message import (
    ConversationResponse,
    MessageCreate,
    MessageResponse,
    UnreadCountResponse,
)
from storefront.models.listing import Listing
from storefront.models.message import Conversation, Message
from storefront.models.user import User

logger = logging.getLogger(__name__)

router = APIRouter()

def find_or_create_conversation(db: Session, user_a: str, user_b: str, listing_id: Optional[str]) -> Conversation:
    user_one_id, user_two_id = sorted((user_a, user_b))
    conversation = db.query(Conversation).filter(
        Conversation.user_one_id == user_one_id,
        Conversation.user_two_id == user_two_id,
        Conversation.listing_id == listing_id if listing_id else Conversation.listing_id.is_(None),
    ).first()

    if not conversation:
        conversation = Conversation(
            user_one_id=user_one_id,
            user_two_id=user_two_id,
            listing_id=listing_id,
            created_at=utcnow(),
        )
        db.add(conversation)
        db.flush()

    return conversation

def get_conversation_or_404(db: Session, conversation_id: str, current_user: User) -> Conversation:
    conversation = db.query(Conversation).filter(Conversation.id == conversation_id).first()
    if not conversation:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Conversation not found",
        )

    if not conversation.has_participant(current_user.id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have access to this conversation",
        )

    return conversation

@router.post("/", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
def create_message(
    *,
    db: Session = Depends(deps.get_db),
    message_in: MessageCreate,
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    """
    Send a message to another user, optionally about a listing.
    """
    recipient = db.query(User).filter(User.id == message_in.recipient_id).first()
    if not recipient or not recipient.is_active:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Recipient not found",
        )

    if message_in.recipient_id == current_user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot send messages to yourself",
        )

    if message_in.listing_id:
        listing = db.query(Listing).filter(Listing.id == message_in.listing_id).first()
        if not listing:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Listing not found",
            )

    now = utcnow()
    conversation = find_or_create_conversation(
        db, current_user.id, recipient.id, message_in.listing_id
    )

    db_message = Message(
        conversation_id=conversation.id,
        sender_id=current_user.id,
        recipient_id=recipient.id,
        listing_id=message_in.listing_id,
        message_text=message_in.message_text,
        is_read=False,
        created_at=now,
    )
    db.add(db_message)

    conversation.last_message = message_in.message_text
    conversation.last_message_at = now

    db.commit()
    db.refresh(db_message)

    logger.info(f"Message {db_message.id} sent in conversation {conversation.id}")
    return db_message

@router.get("/conversations", response_model=List[ConversationResponse])
def get_conversations(
    *,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    """
    Conversations of the current user, most recent activity first, with
    the number of messages still unread by them.
    """
    conversations = db.query(Conversation).filter(
        (Conversation.user_one_id == current_user.id) | (Conversation.user_two_id == current_user.id)
    ).order_by(Conversation.last_message_at.desc()).all()

    unread_rows = db.query(Message.conversation_id, func.count(Message.id)).filter(
        Message.recipient_id == current_user.id,
        Message.is_read.is_(False),
    ).group_by(Message.conversation_id).all()
    unread_by_conversation = dict(unread_rows)

    result = []
    for conversation in conversations:
        other_id = conversation.other_participant_id(current_user.id)
        other = conversation.user_two if other_id == conversation.user_two_id else conversation.user_one
        listing = conversation.listing
        result.append({
            "id": conversation.id,
            "other_user_id": other_id,
            "other_user_name": (other.full_name if other and other.full_name else "Unknown user"),
            "listing_id": conversation.listing_id,
            "listing_title": listing.title if listing else None,
            "listing_image": listing.image if listing else None,
            "last_message": conversation.last_message,
            "last_message_at": conversation.last_message_at,
            "created_at": conversation.created_at,
            "unread_count": unread_by_conversation.get(conversation.id, 0),
        })

    return result

@router.get("/conversations/{conversation_id}", response_model=List[MessageResponse])
def get_conversation_messages(
    *,
    db: Session = Depends(deps.get_db),
    conversation_id: str,
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    """
    Messages of a conversation, oldest first. Messages addressed to the
    current user are marked as read.
    """
    conversation = get_conversation_or_404(db, conversation_id, current_user)

    updated = db.query(Message).filter(
        Message.conversation_id == conversation.id,
        Message.recipient_id == current_user.id,
        Message.is_read.is_(False),
    ).update({Message.is_read: True}, synchronize_session=False)
    if updated:
        db.commit()
        logger.debug(f"Marked {updated} messages read in conversation {conversation.id}")

    return db.query(Message).filter(
        Message.conversation_id == conversation.id
    ).order_by(Message.created_at.asc()).all()

@router.get("/unread-count", response_model=UnreadCountResponse)
def get_unread_count(
    *,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    """
    Total unread messages addressed to the current user.
    """
    count = db.query(func.count(Message.id)).filter(
        Message.recipient_id == current_user.id,
        Message.is_read.is_(False),
    ).scalar()

    return {"unread_count": count or 0}

@router.put("/{message_id}/read", response_model=MessageResponse)
def mark_message_as_read(
    *,
    db: Session = Depends(deps.get_db),
    message_id: str,
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    """
    Mark a message as read.
    """
    message = db.query(Message).filter(Message.id == message_id).first()
    if not message:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Message not found",
        )

    if message.recipient_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the recipient can mark a message as read",
        )

    message.is_read = True
    db.add(message)
    db.commit()
    db.refresh(message)

    return message
