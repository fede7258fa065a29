# backend/app/models/user.py
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.orm import relationship

from backend.app.database.session import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    join_date = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    last_login = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    achievements = Column(JSON, nullable=False, default=list)  # 成就标签列表，按获得顺序

    # 每个用户最多一条对话记录，首次聊天时创建
    conversation = relationship(
        "Conversation",
        back_populates="user",
        uselist=False,
    )
