# backend/app/ai/schemas.py
from typing import List, Optional

from pydantic import BaseModel


# --- Gemini generateContent 响应（只声明用到的字段，其余忽略） ---

class GeminiPart(BaseModel):
    text: Optional[str] = None


class GeminiContent(BaseModel):
    role: Optional[str] = None
    parts: Optional[List[GeminiPart]] = None


class GeminiCandidate(BaseModel):
    content: Optional[GeminiContent] = None


class GeminiError(BaseModel):
    code: Optional[int] = None
    message: Optional[str] = None
    status: Optional[str] = None


class GeminiResponse(BaseModel):
    candidates: Optional[List[GeminiCandidate]] = None
