# backend/app/models/conversation.py
import enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    Integer,
    String,
    DateTime,
    ForeignKey,
    Text,
)
from sqlalchemy.orm import relationship

from backend.app.database.session import Base
from backend.app.models.user import utcnow


class MessageRole(str, enum.Enum):
    USER = "user"
    MODEL = "model"


class Conversation(Base):
    """
    一个用户的完整聊天记录（每个用户只有一条）
    """
    __tablename__ = "conversations"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        Integer,
        ForeignKey("users.id"),
        nullable=False,
        unique=True,  # 并发创建时靠这个约束兜底
        index=True,
    )
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    user = relationship("User", back_populates="conversation")
    messages = relationship(
        "ConversationMessage",
        back_populates="conversation",
        order_by="ConversationMessage.id",
    )


class ConversationMessage(Base):
    """
    一条聊天消息，只追加不修改
    """
    __tablename__ = "conversation_messages"
    __table_args__ = (
        CheckConstraint("role IN ('user', 'model')", name="ck_message_role"),
        CheckConstraint("length(text) > 0", name="ck_message_text_not_empty"),
    )

    id = Column(Integer, primary_key=True, index=True)
    conversation_id = Column(
        Integer,
        ForeignKey("conversations.id"),
        nullable=False,
        index=True,
    )
    role = Column(String(20), nullable=False)  # user / model
    text = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    conversation = relationship("Conversation", back_populates="messages")
