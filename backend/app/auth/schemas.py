# backend/app/auth/schemas.py
from pydantic import BaseModel


class UserCreate(BaseModel):
    username: str
    password: str
