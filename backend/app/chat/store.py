# backend/app/chat/store.py
from typing import Optional
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.chat.exceptions import PersistenceError
from backend.app.models.conversation import (
    Conversation,
    ConversationMessage,
    MessageRole,
)
from backend.app.models.user import User, utcnow

logger = logging.getLogger(__name__)


def find_conversation(db: Session, user_id: int) -> Optional[Conversation]:
    try:
        return db.query(Conversation).filter(Conversation.user_id == user_id).first()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("[Chat Store] 查询对话失败", exc_info=True)
        raise PersistenceError() from e


def get_or_create_conversation(db: Session, user: User) -> Conversation:
    convo = find_conversation(db, user.id)
    if convo:
        return convo

    convo = Conversation(user_id=user.id)
    db.add(convo)
    try:
        db.commit()
    except IntegrityError:
        # 并发请求已经创建了这条对话，回滚后重新读一次
        db.rollback()
        logger.info(f"[Chat Store] 用户 {user.id} 的对话已被并发创建，重新读取")
        convo = find_conversation(db, user.id)
        if convo is None:
            raise PersistenceError()
        return convo
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("[Chat Store] 创建对话失败", exc_info=True)
        raise PersistenceError() from e

    db.refresh(convo)
    logger.info(f"[Chat Store] 为用户 {user.id} 创建新对话 {convo.id}")
    return convo


def append_message(
    db: Session,
    conversation: Conversation,
    role: MessageRole,
    text: str,
) -> ConversationMessage:
    now = utcnow()
    message = ConversationMessage(
        conversation_id=conversation.id,
        role=role.value,
        text=text,
        created_at=now,
    )
    conversation.updated_at = now
    db.add(message)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("[Chat Store] 保存消息失败", exc_info=True)
        raise PersistenceError() from e

    db.refresh(message)
    db.refresh(conversation)
    return message
