# backend/app/main.py
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.app.config.settings import settings
from backend.app.database.session import Base, engine
from backend.app.auth.routes import router as auth_router
from backend.app.chat.routes import router as chat_router
from backend.app.chat.exceptions import ChatError

# 导入模型，确保表被创建
from backend.app.models.user import User  # noqa: F401
from backend.app.models.conversation import Conversation, ConversationMessage  # noqa: F401

# 配置日志
logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# 创建数据库表（确保所有模型已被导入）
Base.metadata.create_all(bind=engine)

app = FastAPI(title=settings.APP_NAME)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ChatError)
async def handle_chat_error(request: Request, exc: ChatError):
    if exc.status_code >= 500:
        logger.warning(f"[Main] {request.url.path} 失败: {type(exc).__name__}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "invalid request body"},
    )


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception):
    logger.error(f"[Main] {request.url.path} 未处理的异常: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Server error"},
    )


# 注册路由
app.include_router(auth_router)
app.include_router(chat_router)


@app.get("/")
def read_root():
    return {"message": f"{settings.APP_NAME} is running"}
