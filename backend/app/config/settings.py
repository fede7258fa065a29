# backend/app/config/settings.py
from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = "Chat Portal Backend"
    SQLALCHEMY_DATABASE_URL: str = "sqlite:///./chatbot.db"

    # Gemini 配置：GOOGLE_API_KEY 为空时走本地回复模式
    GOOGLE_API_KEY: Optional[str] = None
    GEMINI_MODEL: str = "gemini-1.5-flash-latest"
    GEMINI_API_BASE: str = "https://generativelanguage.googleapis.com/v1beta"
    GEMINI_TIMEOUT_SECONDS: float = 120.0  # 生成可能很慢，给足时间

    DEFAULT_ACHIEVEMENT: str = "First Login"
    CHAT_PAGE_PATH: str = "/chat.html"  # 登录成功后跳转的页面

    HOST: str = "0.0.0.0"
    PORT: int = 3000
    LOG_LEVEL: str = "INFO"
    CORS_ALLOW_ORIGINS: List[str] = ["*"]

    class Config:
        env_file = ".env"  # 可以用 .env 覆盖这些配置


settings = Settings()
