# backend/app/ai/service.py
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence
from urllib.parse import quote
import logging

import httpx
from pydantic import ValidationError

from backend.app.ai.schemas import GeminiError, GeminiResponse
from backend.app.chat.exceptions import UpstreamRejected, UpstreamUnavailable
from backend.app.config.settings import settings

logger = logging.getLogger(__name__)

NO_REPLY_DETAIL = "No reply from Gemini"


class GenerationClient(Protocol):
    def generate(self, history: Sequence[Any], model: str) -> str:
        ...


@dataclass
class ParsedReply:
    """
    解析 Gemini 响应的结果。text 为 None 表示没有拿到回复（不是空字符串成功）。
    """
    text: Optional[str] = None
    error: Optional[str] = None


def build_contents(history: Sequence[Any]) -> List[Dict[str, Any]]:
    """
    把对话历史转成 Gemini 的 contents 列表，角色和顺序原样保留。

    history 中的元素需要有 role / text 属性（ConversationMessage 即可）。
    """
    return [
        {
            "role": turn.role,
            "parts": [{"text": turn.text}],
        }
        for turn in history
    ]


def parse_error_message(data: Any) -> Optional[str]:
    # error 单独解析，candidates 结构不对时也能拿到上游的错误信息
    if not isinstance(data, dict) or data.get("error") is None:
        return None
    try:
        error = GeminiError.model_validate(data["error"])
    except ValidationError:
        return None
    return error.message or None


def parse_reply(data: Any) -> ParsedReply:
    """
    按 candidates[0].content.parts[*].text 取回复，多段文本用换行拼接。
    结构不对或者没有非空文本时 text 为 None；上游给了 error.message 就带上。
    """
    error = parse_error_message(data)

    try:
        response = GeminiResponse.model_validate(data)
    except ValidationError:
        logger.warning("[AI Service] 响应结构无法解析")
        return ParsedReply(error=error)

    if not response.candidates:
        return ParsedReply(error=error)

    content = response.candidates[0].content
    if content is None or not content.parts:
        return ParsedReply(error=error)

    texts = [part.text for part in content.parts if part.text]
    if not texts:
        return ParsedReply(error=error)

    return ParsedReply(text="\n".join(texts), error=error)


def latest_user_text(history: Sequence[Any]) -> str:
    for turn in reversed(history):
        if turn.role == "user":
            return turn.text
    return ""


class LocalFallbackClient:
    """没有配置 GOOGLE_API_KEY 时使用：不联网，直接回显最后一条用户消息。"""

    def generate(self, history: Sequence[Any], model: str) -> str:
        text = latest_user_text(history)
        logger.info(f"[AI Service] 本地模式回复，模型参数 {model} 被忽略")
        return f'Local-mode reply: I heard "{text}" - set GOOGLE_API_KEY to enable real AI.'


class GeminiClient:
    """同步调用 Gemini generateContent，每轮只请求一次，不重试。"""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 120.0,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def endpoint(self, model: str) -> str:
        return f"{self.base_url}/models/{quote(model, safe='')}:generateContent"

    def generate(self, history: Sequence[Any], model: str) -> str:
        payload = {"contents": build_contents(history)}
        logger.debug(f"[AI Service] 调用 Gemini, 模型: {model}, 消息数: {len(history)}")

        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(
                    self.endpoint(model),
                    json=payload,
                    headers={"x-goog-api-key": self.api_key},
                )
        except httpx.TimeoutException as e:
            logger.warning(f"[AI Service] Gemini 请求超时 ({self.timeout}s)")
            raise UpstreamUnavailable("Gemini request timed out") from e
        except httpx.RequestError as e:
            # 连接失败、解压失败、重定向过多等
            logger.warning(f"[AI Service] Gemini 连接失败: {e}")
            raise UpstreamUnavailable("Gemini is unreachable") from e

        try:
            data = response.json()
        except ValueError:
            data = None

        parsed = parse_reply(data)
        if parsed.text is not None:
            return parsed.text

        detail = parsed.error or NO_REPLY_DETAIL
        logger.warning(
            f"[AI Service] Gemini 没有返回可用回复: status={response.status_code}, detail={detail}"
        )
        raise UpstreamRejected(detail)


def get_generation_client() -> GenerationClient:
    # 每次请求时读取配置，方便测试里替换
    api_key = (settings.GOOGLE_API_KEY or "").strip()
    if not api_key:
        return LocalFallbackClient()
    return GeminiClient(
        api_key=api_key,
        base_url=settings.GEMINI_API_BASE,
        timeout=settings.GEMINI_TIMEOUT_SECONDS,
    )
