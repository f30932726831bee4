"""网关异常分类：把底层网络/HTTP 失败映射成面向用户的中文提示。"""

from __future__ import annotations

from enum import Enum
from typing import Optional
from urllib.parse import urlparse

import httpx


class ErrorKind(str, Enum):
    PROVIDER_MISCONFIGURED = "provider_misconfigured"
    SECURE_ORIGIN_BLOCKED = "secure_origin_blocked"
    TRANSPORT_FAILURE = "transport_failure"
    UPSTREAM_FAILURE = "upstream_failure"
    MALFORMED_RESPONSE = "malformed_response"
    RETRIEVAL_FAILED = "retrieval_failed"
    NO_RELEVANT_CONTENT = "no_relevant_content"
    UNKNOWN = "unknown"


class GatewayError(RuntimeError):
    """所有网关异常的基类，message 即展示给用户的文案。"""

    kind: ErrorKind = ErrorKind.UNKNOWN
    retryable: bool = True

    def __init__(self, message: str, *, endpoint: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.endpoint = endpoint


class ProviderMisconfigured(GatewayError):
    kind = ErrorKind.PROVIDER_MISCONFIGURED
    retryable = False


class SecureOriginBlocked(GatewayError):
    kind = ErrorKind.SECURE_ORIGIN_BLOCKED
    retryable = False


class TransportFailure(GatewayError):
    kind = ErrorKind.TRANSPORT_FAILURE


class UpstreamFailure(GatewayError):
    kind = ErrorKind.UPSTREAM_FAILURE

    def __init__(self, message: str, *, endpoint: Optional[str] = None, status_code: Optional[int] = None) -> None:
        super().__init__(message, endpoint=endpoint)
        self.status_code = status_code


class MalformedResponse(GatewayError):
    kind = ErrorKind.MALFORMED_RESPONSE
    retryable = False

    def __init__(self, message: str, *, endpoint: Optional[str] = None, raw_response: Optional[str] = None) -> None:
        super().__init__(message, endpoint=endpoint)
        self.raw_response = raw_response


class RetrievalFailed(GatewayError):
    kind = ErrorKind.RETRIEVAL_FAILED
    retryable = False


NO_RELEVANT_CONTENT_MESSAGE = "在知识库中未找到足够相关的内容来进行漫游联想。"


def secure_origin_message(url: str) -> str:
    return (
        "【安全限制警告】\n\n"
        f"当前页面 (HTTPS) 无法连接到不安全的 HTTP 后端 ({url})。\n"
        "浏览器出于安全原因拦截了请求 (Mixed Content)。\n\n"
        "解决方案：\n"
        "1. 请将您的后端服务升级为 HTTPS。\n"
        "2. 或者切换到“前端直连”模式使用基础 AI 功能。\n"
        "3. 或者在本地环境运行前端。"
    )


def transport_message(url: str) -> str:
    return (
        f"网络请求失败。无法连接到后端服务 ({url})。\n\n"
        "可能原因：\n"
        "1. 后端服务未启动。\n"
        "2. 跨域 (CORS) 配置未允许当前域名。\n"
        "3. 网络连接问题。"
    )


def upstream_message(status_code: int, url: str) -> str:
    message = f"后端代理服务出错 (状态码: {status_code}，{url})。请检查后端服务日志。"
    if 500 <= status_code < 600:
        message += " 这可能是由于后端无法连接到上游AI服务导致的。"
    return message


class ErrorClassifier:
    """
    纯函数式分类器，判定顺序固定：

    1. 安全页面访问不安全地址（浏览器必然拦截）
    2. 通用网络层失败
    3. 其它异常沿用原始信息，缺省时给出通用文案
    """

    def __init__(self, page_origin: Optional[str] = None) -> None:
        self.page_origin = page_origin

    def is_secure_origin_violation(self, url: str) -> bool:
        if not self.page_origin:
            return False
        return urlparse(self.page_origin).scheme == "https" and url.startswith("http:")

    def classify(self, exc: BaseException, url: str) -> GatewayError:
        if self.is_secure_origin_violation(url):
            return SecureOriginBlocked(secure_origin_message(url), endpoint=url)
        if isinstance(exc, httpx.TransportError):
            return TransportFailure(transport_message(url), endpoint=url)
        if isinstance(exc, GatewayError):
            return exc
        return GatewayError(str(exc) or f"后端请求出错 ({url})", endpoint=url)

    def wrap(self, exc: BaseException, url: str) -> GatewayError:
        """分类并挂上原始异常，便于直接 raise。"""

        error = self.classify(exc, url)
        if error is not exc:
            error.__cause__ = exc
        return error

    def message_for(self, exc: BaseException, url: str) -> str:
        return self.classify(exc, url).message


__all__ = [
    "ErrorClassifier",
    "ErrorKind",
    "GatewayError",
    "MalformedResponse",
    "NO_RELEVANT_CONTENT_MESSAGE",
    "ProviderMisconfigured",
    "RetrievalFailed",
    "SecureOriginBlocked",
    "TransportFailure",
    "UpstreamFailure",
    "secure_origin_message",
    "transport_message",
    "upstream_message",
]
