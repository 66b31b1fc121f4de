from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import desc, func
from datetime import datetime
import logging

from vidhanto.config import AI_RATE_LIMIT_PER_MINUTE
from vidhanto.database import get_db
from vidhanto.models import User, Chat, ChatMessage, ChatType, ChatStatus, SenderType
from vidhanto.ai.schemas import AIChatRequest, AIChatResponse, AIChatUpdate, AIUsage
from vidhanto.chats.schemas import ChatResponse, ChatListResponse
from vidhanto.auth.dependencies import get_current_user
from vidhanto.pagination import PageParams, paginate
from vidhanto.pricing import ai_token_cost
from vidhanto.rate_limiter import rate_limit_by_user
from vidhanto.services.ai_service import (
    LegalAssistant, AIServiceError, AIQuotaExceeded, HISTORY_WINDOW, get_legal_assistant,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai", tags=["AI Assistant"])

APOLOGY_MESSAGE = (
    "I'm sorry, I couldn't process your question right now. "
    "Please try again in a moment, or book a consultation with one of our lawyers."
)

ROLE_FOR_SENDER = {
    SenderType.USER: "user",
    SenderType.AI: "assistant",
}


def get_ai_chat_or_404(chat_id: str, user: User, db: Session) -> Chat:
    chat = db.query(Chat).options(selectinload(Chat.messages)).filter(
        Chat.id == chat_id,
        Chat.user_id == user.id,
        Chat.type == ChatType.AI,
    ).first()
    if not chat:
        raise HTTPException(status_code=404, detail="Chat not found")
    return chat


def conversation_history(chat: Chat) -> list:
    history = [
        {"role": ROLE_FOR_SENDER[m.sender_type], "content": m.content}
        for m in chat.messages
        if m.sender_type in ROLE_FOR_SENDER and not m.is_error
    ]
    return history[-HISTORY_WINDOW:]


@router.post("/chat", response_model=AIChatResponse)
def chat_with_assistant(
    request: AIChatRequest,
    current_user: User = Depends(rate_limit_by_user(AI_RATE_LIMIT_PER_MINUTE, 60, scope="ai")),
    db: Session = Depends(get_db),
    assistant: LegalAssistant = Depends(get_legal_assistant),
):
    if request.chat_id:
        chat = get_ai_chat_or_404(request.chat_id, current_user, db)
        if chat.status != ChatStatus.ACTIVE:
            raise HTTPException(status_code=400, detail="This chat has ended")
    else:
        chat = Chat(
            user_id=current_user.id,
            type=ChatType.AI,
            title=request.message.strip()[:50],
            model_used=assistant.model,
        )
        db.add(chat)

    history = conversation_history(chat)
    now = datetime.utcnow()
    chat.messages.append(ChatMessage(
        sender_id=current_user.id,
        sender_type=SenderType.USER,
        content=request.message,
    ))
    chat.last_message_at = now
    db.flush()

    try:
        reply = assistant.reply(request.message, history)
    except AIQuotaExceeded:
        db.commit()
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="AI service quota exceeded. Please try again later.",
        )
    except AIServiceError as e:
        chat.messages.append(ChatMessage(
            sender_type=SenderType.AI,
            content=APOLOGY_MESSAGE,
            is_error=True,
        ))
        db.commit()
        logger.error(f"AI reply failed: {e}", extra={"chat_id": chat.id})
        raise HTTPException(status_code=500, detail="AI service temporarily unavailable")

    ai_message = ChatMessage(
        sender_type=SenderType.AI,
        content=reply.content,
        prompt_tokens=reply.prompt_tokens,
        completion_tokens=reply.completion_tokens,
    )
    chat.messages.append(ai_message)
    cost = ai_token_cost(reply.total_tokens)
    chat.total_tokens = (chat.total_tokens or 0) + reply.total_tokens
    chat.total_cost = round((chat.total_cost or 0) + cost, 6)
    chat.model_used = reply.model
    chat.last_message_at = datetime.utcnow()
    db.commit()
    db.refresh(ai_message)

    logger.info("AI reply stored", extra={"chat_id": chat.id, "tokens": reply.total_tokens})
    return {
        "chat_id": chat.id,
        "title": chat.title,
        "message": ai_message,
        "usage": {
            "prompt_tokens": reply.prompt_tokens,
            "completion_tokens": reply.completion_tokens,
            "total_tokens": reply.total_tokens,
            "cost": cost,
        },
    }


@router.get("/history", response_model=ChatListResponse)
def chat_history(
    page: PageParams = Depends(),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    query = db.query(Chat).filter(
        Chat.user_id == current_user.id,
        Chat.type == ChatType.AI,
    ).order_by(desc(Chat.last_message_at), desc(Chat.created_at))
    result = paginate(query, page)
    return {
        "chats": result["items"],
        "total": result["total"],
        "page": result["page"],
        "pages": result["pages"],
    }


@router.get("/usage", response_model=AIUsage)
def usage(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    chats, tokens, cost = db.query(
        func.count(Chat.id),
        func.coalesce(func.sum(Chat.total_tokens), 0),
        func.coalesce(func.sum(Chat.total_cost), 0.0),
    ).filter(Chat.user_id == current_user.id, Chat.type == ChatType.AI).one()
    messages = db.query(func.count(ChatMessage.id)).select_from(ChatMessage).join(
        Chat, ChatMessage.chat_id == Chat.id
    ).filter(
        Chat.user_id == current_user.id,
        Chat.type == ChatType.AI,
    ).scalar()
    return {
        "total_chats": chats,
        "total_messages": messages or 0,
        "total_tokens": int(tokens),
        "total_cost": round(float(cost), 6),
    }


@router.get("/chat/{chat_id}", response_model=ChatResponse)
def get_chat(
    chat_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return get_ai_chat_or_404(chat_id, current_user, db)


@router.put("/chat/{chat_id}", response_model=ChatResponse)
def update_chat(
    chat_id: str,
    update: AIChatUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    chat = get_ai_chat_or_404(chat_id, current_user, db)
    for field, value in update.dict(exclude_unset=True).items():
        setattr(chat, field, value)
    db.commit()
    return get_ai_chat_or_404(chat_id, current_user, db)


@router.post("/chat/{chat_id}/end", response_model=ChatResponse)
def end_chat(
    chat_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    chat = get_ai_chat_or_404(chat_id, current_user, db)
    if chat.status == ChatStatus.ACTIVE:
        chat.status = ChatStatus.ENDED
        chat.ended_at = datetime.utcnow()
        db.commit()
    return get_ai_chat_or_404(chat_id, current_user, db)


@router.delete("/chat/{chat_id}")
def delete_chat(
    chat_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    chat = get_ai_chat_or_404(chat_id, current_user, db)
    db.delete(chat)
    db.commit()
    return {"message": "Chat deleted successfully"}
