from pydantic import BaseModel, Field, validator
from typing import Optional, List
from datetime import datetime

from vidhanto.models import ChatType, ChatStatus, SenderType


class ChatMessageResponse(BaseModel):
    id: str
    chat_id: str
    sender_id: Optional[str] = None
    sender_type: SenderType
    content: str
    prompt_tokens: Optional[int] = 0
    completion_tokens: Optional[int] = 0
    is_error: bool = False
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ChatSummary(BaseModel):
    id: str
    user_id: str
    lawyer_id: Optional[str] = None
    appointment_id: Optional[str] = None
    type: ChatType
    title: Optional[str] = None
    status: ChatStatus
    model_used: Optional[str] = None
    total_tokens: Optional[int] = 0
    total_cost: Optional[float] = 0.0
    rating: Optional[int] = None
    feedback: Optional[str] = None
    ended_at: Optional[datetime] = None
    last_message_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ChatResponse(ChatSummary):
    messages: List[ChatMessageResponse] = []


class ChatListResponse(BaseModel):
    chats: List[ChatSummary]
    total: int
    page: int
    pages: int


class ChatCreate(BaseModel):
    type: ChatType = ChatType.GENERAL
    title: Optional[str] = Field(None, max_length=200)
    appointment_id: Optional[str] = None

    @validator("type")
    def not_ai(cls, v):
        if v == ChatType.AI:
            raise ValueError("AI chats are started through the AI assistant")
        return v


class ChatRename(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)


class MessageCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)


class ChatStats(BaseModel):
    total_chats: int
    active_chats: int
    total_messages: int
    by_type: dict
