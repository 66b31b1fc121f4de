from pydantic import BaseModel, Field
from typing import Optional

from vidhanto.chats.schemas import ChatMessageResponse


class AIChatRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=4000)
    chat_id: Optional[str] = None


class TokenUsage(BaseModel):
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    cost: float


class AIChatResponse(BaseModel):
    chat_id: str
    title: Optional[str] = None
    message: ChatMessageResponse
    usage: TokenUsage


class AIChatUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    rating: Optional[int] = Field(None, ge=1, le=5)
    feedback: Optional[str] = Field(None, max_length=2000)


class AIUsage(BaseModel):
    total_chats: int
    total_messages: int
    total_tokens: int
    total_cost: float
