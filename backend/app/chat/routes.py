# backend/app/chat/routes.py
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backend.app.ai.service import GenerationClient, get_generation_client
from backend.app.database.session import get_db
from backend.app.chat import schemas as chat_schemas
from backend.app.chat import service as chat_service

logger = logging.getLogger(__name__)

ERROR_RESPONSES = {
    400: {"model": chat_schemas.ChatErrorOut},
    404: {"model": chat_schemas.ChatErrorOut},
    500: {"model": chat_schemas.ChatErrorOut},
    502: {"model": chat_schemas.ChatErrorOut},
}

router = APIRouter(prefix="/chat", tags=["chat"])


@router.post(
    "",
    response_model=chat_schemas.ChatReply,
    responses=ERROR_RESPONSES,
)
def chat(
    payload: chat_schemas.ChatRequest,
    db: Session = Depends(get_db),
    generator: GenerationClient = Depends(get_generation_client),
):
    """
    发送一条消息，返回模型回复。错误统一返回 {"error": ...}
    """
    result = chat_service.handle_chat_turn(
        db=db,
        username=payload.username,
        message=payload.message,
        model=payload.model,
        generator=generator,
    )
    return chat_schemas.ChatReply(reply=result.reply)


@router.get(
    "/history",
    response_model=chat_schemas.ConversationHistory,
    responses=ERROR_RESPONSES,
)
def history(
    username: str = "",
    db: Session = Depends(get_db),
):
    """
    查看某个用户的完整聊天记录
    """
    messages = chat_service.get_history(db, username)
    return chat_schemas.ConversationHistory(
        username=username.strip(),
        updated_at=messages[-1].conversation.updated_at if messages else None,
        messages=[
            chat_schemas.ConversationMessageOut.model_validate(m) for m in messages
        ],
    )
