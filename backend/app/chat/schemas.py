# backend/app/chat/schemas.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


# --- 输入模型 ---

class ChatRequest(BaseModel):
    """
    POST /chat 请求体。字段都允许缺省，缺失和空串统一由业务层返回 400。
    """
    username: Optional[str] = None
    message: Optional[str] = None
    model: Optional[str] = None


# --- 输出模型 ---

class ChatReply(BaseModel):
    reply: str


class ChatErrorOut(BaseModel):
    error: str


class ConversationMessageOut(BaseModel):
    role: str
    text: str
    created_at: datetime

    class Config:
        from_attributes = True


class ConversationHistory(BaseModel):
    username: str
    updated_at: Optional[datetime] = None
    messages: List[ConversationMessageOut]
