# backend/app/chat/exceptions.py
from fastapi import status


class ChatError(Exception):
    """聊天流程中的业务错误，路由层统一转成 {"error": message}"""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequest(ChatError):
    status_code = status.HTTP_400_BAD_REQUEST


class UserNotFound(ChatError):
    status_code = status.HTTP_404_NOT_FOUND


class UpstreamRejected(ChatError):
    # 上游返回了错误信息，或者响应里解析不出回复
    status_code = status.HTTP_502_BAD_GATEWAY


class UpstreamUnavailable(ChatError):
    # 网络错误 / 超时，调用方可以重试
    status_code = status.HTTP_502_BAD_GATEWAY


class PersistenceError(ChatError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "Server error"):
        super().__init__(message)
