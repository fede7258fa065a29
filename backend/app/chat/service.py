# backend/app/chat/service.py
from dataclasses import dataclass
from typing import List, Optional
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.ai.service import GenerationClient, get_generation_client
from backend.app.auth.service import get_user_by_username
from backend.app.chat.exceptions import InvalidRequest, PersistenceError, UserNotFound
from backend.app.chat.store import append_message, find_conversation, get_or_create_conversation
from backend.app.config.settings import settings
from backend.app.models.conversation import Conversation, ConversationMessage, MessageRole
from backend.app.models.user import User

logger = logging.getLogger(__name__)


@dataclass
class ChatTurnResult:
    reply: str
    conversation: Conversation


def _require_user(db: Session, username: str) -> User:
    try:
        user = get_user_by_username(db, username)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("[Chat Service] 查询用户失败", exc_info=True)
        raise PersistenceError() from e
    if not user:
        raise UserNotFound("user not found")
    return user


def handle_chat_turn(
    db: Session,
    username: Optional[str],
    message: Optional[str],
    model: Optional[str] = None,
    generator: Optional[GenerationClient] = None,
) -> ChatTurnResult:
    """
    处理一轮对话：
    1. 校验参数，找到用户和对话（没有就创建）
    2. 先保存用户消息，保证生成失败时提问也不会丢
    3. 把完整历史交给生成客户端
    4. 成功后保存模型回复并返回

    生成失败时异常直接抛给调用方，不追加模型消息，也不重试。
    """
    username = (username or "").strip()
    text = message or ""
    if not username or not text.strip():
        raise InvalidRequest("username and message required")

    model = (model or "").strip() or settings.GEMINI_MODEL
    if generator is None:
        generator = get_generation_client()

    user = _require_user(db, username)
    convo = get_or_create_conversation(db, user)

    append_message(db, convo, MessageRole.USER, text)
    logger.info(
        f"[Chat Service] 用户 {username} 的消息已保存，对话 {convo.id} 共 {len(convo.messages)} 条"
    )

    reply = generator.generate(list(convo.messages), model)

    append_message(db, convo, MessageRole.MODEL, reply)
    logger.info(f"[Chat Service] 模型回复已保存，对话 {convo.id} 共 {len(convo.messages)} 条")

    return ChatTurnResult(reply=reply, conversation=convo)


def get_history(db: Session, username: Optional[str]) -> List[ConversationMessage]:
    username = (username or "").strip()
    if not username:
        raise InvalidRequest("username required")

    user = _require_user(db, username)
    convo = find_conversation(db, user.id)
    if convo is None:
        return []
    return list(convo.messages)
