# backend/app/auth/routes.py
from urllib.parse import quote
import logging

from fastapi import APIRouter, Depends, Form, status
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.auth.schemas import UserCreate
from backend.app.auth.service import (
    UsernameTaken,
    authenticate_user,
    create_user,
    record_login,
)
from backend.app.config.settings import settings
from backend.app.database.session import get_db
from backend.app.utils.security import MAX_PASSWORD_BYTES, password_too_long

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

SERVER_ERROR_PAGE = "<h1>Server error</h1>"

REGISTER_FORM_PAGE = """<!DOCTYPE html>
<html>
<head><title>Sign up</title></head>
<body>
<h1>Sign up</h1>
<form method="post" action="/register">
  <input name="username" placeholder="Username" required>
  <input name="password" type="password" placeholder="Password" required>
  <button type="submit">Create account</button>
</form>
<p>Already registered? <a href="/">Log in</a></p>
</body>
</html>"""


@router.post("/login")
def login(
    username: str = Form(""),
    password: str = Form(""),
    db: Session = Depends(get_db),
):
    try:
        user = authenticate_user(db, username.strip(), password)
        if not user:
            return HTMLResponse(
                "<h1>Login failed</h1><p>Invalid username or password</p>",
                status_code=status.HTTP_401_UNAUTHORIZED,
            )
        record_login(db, user)
    except SQLAlchemyError:
        logger.error("[Auth Routes] 登录时数据库出错", exc_info=True)
        return HTMLResponse(
            SERVER_ERROR_PAGE,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    # 跳转到聊天页面，带上用户名
    return RedirectResponse(
        f"{settings.CHAT_PAGE_PATH}?username={quote(user.username, safe='')}",
        status_code=status.HTTP_303_SEE_OTHER,
    )


@router.get("/register", response_class=HTMLResponse)
def register_page():
    return REGISTER_FORM_PAGE


@router.post("/register")
def register(
    username: str = Form(""),
    password: str = Form(""),
    db: Session = Depends(get_db),
):
    username = username.strip()
    if not username or not password:
        return HTMLResponse(
            "<h1>Signup failed</h1><p>Username and password are required.</p>",
            status_code=status.HTTP_400_BAD_REQUEST,
        )
    if password_too_long(password):
        return HTMLResponse(
            f"<h1>Signup failed</h1><p>Password must be at most {MAX_PASSWORD_BYTES} bytes.</p>",
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    try:
        create_user(db, UserCreate(username=username, password=password))
    except UsernameTaken:
        return HTMLResponse(
            "<h1>User already exists</h1><p>Try a different username.</p>",
            status_code=status.HTTP_409_CONFLICT,
        )
    except SQLAlchemyError:
        logger.error("[Auth Routes] 注册时数据库出错", exc_info=True)
        return HTMLResponse(
            SERVER_ERROR_PAGE,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    return HTMLResponse(
        "<h1>Signup successful</h1><p>You can now <a href='/'>login</a></p>",
        status_code=status.HTTP_201_CREATED,
    )
