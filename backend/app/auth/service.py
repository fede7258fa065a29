# backend/app/auth/service.py
from typing import Optional
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.app.config.settings import settings
from backend.app.models.user import User, utcnow
from backend.app.auth.schemas import UserCreate
from backend.app.utils.security import hash_password, verify_password

logger = logging.getLogger(__name__)


class UsernameTaken(Exception):
    pass


def get_user_by_username(db: Session, username: str) -> Optional[User]:
    return db.query(User).filter(User.username == username).first()


def create_user(db: Session, user_in: UserCreate) -> User:
    if get_user_by_username(db, user_in.username):
        raise UsernameTaken(user_in.username)

    now = utcnow()
    user = User(
        username=user_in.username,
        hashed_password=hash_password(user_in.password),
        join_date=now,
        last_login=now,
        achievements=[settings.DEFAULT_ACHIEVEMENT],
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # 预检查和提交之间被别的请求抢先注册了
        db.rollback()
        logger.warning(f"[Auth Service] 并发注册冲突: {user_in.username}")
        raise UsernameTaken(user_in.username)
    db.refresh(user)
    logger.info(f"[Auth Service] 新用户注册: {user.username} (id={user.id})")
    return user


def authenticate_user(db: Session, username: str, password: str) -> Optional[User]:
    user = get_user_by_username(db, username)
    if not user:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


def record_login(db: Session, user: User) -> User:
    user.last_login = utcnow()
    db.commit()
    db.refresh(user)
    return user
