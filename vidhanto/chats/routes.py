from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import desc, func, or_
from datetime import datetime
from typing import Optional
import logging

from vidhanto.database import get_db
from vidhanto.models import User, Appointment, Chat, ChatMessage, ChatType, ChatStatus, SenderType
from vidhanto.chats.schemas import (
    ChatCreate, ChatRename, MessageCreate, ChatResponse, ChatListResponse, ChatMessageResponse, ChatStats,
)
from vidhanto.chats.realtime import manager, message_event
from vidhanto.auth.dependencies import get_current_user
from vidhanto.pagination import PageParams, paginate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chats", tags=["Chats"])


def participant_filter(user: User):
    """Chats the user owns or is the consulting lawyer on."""
    lawyer = user.lawyer_profile
    if lawyer is not None:
        return or_(Chat.user_id == user.id, Chat.lawyer_id == lawyer.id)
    return Chat.user_id == user.id


def get_participant_chat(chat_id: str, user: User, db: Session) -> Chat:
    chat = db.query(Chat).options(
        selectinload(Chat.messages),
        selectinload(Chat.lawyer),
    ).filter(Chat.id == chat_id).first()
    if not chat:
        raise HTTPException(status_code=404, detail="Chat not found")
    if not chat.is_participant(user):
        raise HTTPException(status_code=403, detail="Access denied")
    return chat


@router.get("/", response_model=ChatListResponse)
def list_chats(
    type: Optional[ChatType] = None,
    page: PageParams = Depends(),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    query = db.query(Chat).filter(participant_filter(current_user))
    if type:
        query = query.filter(Chat.type == type)
    result = paginate(query.order_by(desc(Chat.last_message_at), desc(Chat.created_at)), page)
    return {
        "chats": result["items"],
        "total": result["total"],
        "page": result["page"],
        "pages": result["pages"],
    }


@router.post("/", response_model=ChatResponse, status_code=status.HTTP_201_CREATED)
def create_chat(
    chat_data: ChatCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    chat = Chat(user_id=current_user.id, type=chat_data.type, title=chat_data.title)

    if chat_data.appointment_id:
        appointment = db.query(Appointment).filter(
            Appointment.id == chat_data.appointment_id,
            Appointment.user_id == current_user.id,
        ).first()
        if not appointment:
            raise HTTPException(status_code=404, detail="Appointment not found")
        chat.appointment_id = appointment.id
        if chat_data.type == ChatType.CONSULTATION:
            chat.lawyer_id = appointment.lawyer_id
    elif chat_data.type == ChatType.CONSULTATION:
        raise HTTPException(status_code=400, detail="Consultation chats require an appointment")

    if not chat.title:
        chat.title = "Consultation" if chat.type == ChatType.CONSULTATION else "New conversation"

    db.add(chat)
    db.commit()
    return get_participant_chat(chat.id, current_user, db)


@router.get("/stats", response_model=ChatStats)
def chat_stats(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    visible = participant_filter(current_user)
    by_type = dict(
        db.query(Chat.type, func.count(Chat.id)).filter(visible).group_by(Chat.type).all()
    )
    active = db.query(func.count(Chat.id)).filter(visible, Chat.status == ChatStatus.ACTIVE).scalar()
    messages = db.query(func.count(ChatMessage.id)).select_from(ChatMessage).join(
        Chat, ChatMessage.chat_id == Chat.id
    ).filter(visible).scalar()
    return {
        "total_chats": sum(by_type.values()),
        "active_chats": active or 0,
        "total_messages": messages or 0,
        "by_type": {chat_type.value: count for chat_type, count in by_type.items()},
    }


@router.get("/{chat_id}", response_model=ChatResponse)
def get_chat(
    chat_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return get_participant_chat(chat_id, current_user, db)


@router.post("/{chat_id}/messages", response_model=ChatMessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message(
    chat_id: str,
    message_data: MessageCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    chat = get_participant_chat(chat_id, current_user, db)
    if chat.status != ChatStatus.ACTIVE:
        raise HTTPException(status_code=400, detail="This chat has ended")

    is_lawyer = chat.lawyer is not None and chat.lawyer.user_id == current_user.id
    message = ChatMessage(
        sender_id=current_user.id,
        sender_type=SenderType.LAWYER if is_lawyer else SenderType.USER,
        content=message_data.content,
    )
    chat.messages.append(message)
    chat.last_message_at = datetime.utcnow()
    db.commit()
    db.refresh(message)

    # Live participants in the chat's room see REST-posted messages too
    await manager.broadcast(chat.id, message_event(chat.id, current_user.id, message.content))
    return message


@router.put("/{chat_id}", response_model=ChatResponse)
def rename_chat(
    chat_id: str,
    rename: ChatRename,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    chat = get_participant_chat(chat_id, current_user, db)
    chat.title = rename.title
    db.commit()
    return get_participant_chat(chat_id, current_user, db)


@router.delete("/{chat_id}")
def delete_chat(
    chat_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    chat = get_participant_chat(chat_id, current_user, db)
    if chat.user_id != current_user.id:
        raise HTTPException(status_code=403, detail="Only the chat owner can delete it")
    db.delete(chat)
    db.commit()
    logger.info("Chat deleted", extra={"chat_id": chat_id})
    return {"message": "Chat deleted successfully"}
