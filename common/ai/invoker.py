"""模型调用入口：按执行模式分发到直连 Provider 或后端代理，并处理重试与流式输出。"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable, Optional

import httpx

from common.ai.errors import (
    ErrorClassifier,
    GatewayError,
    SecureOriginBlocked,
    secure_origin_message,
)
from common.ai.parsing import parse_json_response
from common.ai.providers import ProviderTable, load_provider_table
from common.clients.llm.backend_proxy import BackendProxyClient
from common.clients.llm.router import ProviderRouter
from common.domain import AiMode, ExecutionMode, InvocationRequest, InvocationResult
from common.utils.config import Settings, get_settings

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


class Invoker:
    """
    单次调用的执行者。

    - frontend：直连 Provider，不重试
    - backend：统一发往代理，失败后固定间隔重试，最终抛出最后一次的分类错误
    - 流式调用不重试，任何阶段失败都终止流
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        providers: Optional[ProviderTable] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self.settings = settings or get_settings()
        self.providers = providers or load_provider_table(self.settings)
        self.classifier = ErrorClassifier(self.settings.app_origin)
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=httpx.Timeout(self.settings.ai_request_timeout))
        self._sleep = sleep
        self.router = ProviderRouter(self.providers, self._client)
        self.backend = BackendProxyClient(self.settings.backend_base_url, self._client)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "Invoker":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def guard_origin(self, url: str) -> None:
        """安全页面访问 http 地址会被浏览器直接拦截，无需发请求。"""

        if self.classifier.is_secure_origin_violation(url):
            raise SecureOriginBlocked(secure_origin_message(url), endpoint=url)

    def endpoint_for(self, request: InvocationRequest) -> str:
        """请求实际发往的地址，用于错误文案。"""

        if request.execution_mode is ExecutionMode.FRONTEND:
            return self.router.get(request.provider).endpoint
        return self.backend.base_url

    async def invoke(self, request: InvocationRequest, *, expect_list: bool = False) -> InvocationResult:
        """执行一次非流式调用；want_json 时附带结构化解析结果。"""

        if request.execution_mode is ExecutionMode.FRONTEND:
            text = await self._invoke_frontend(request)
        else:
            text = await self._invoke_backend(request)

        if not request.want_json:
            return InvocationResult(provider=request.provider, text=text)
        outcome = parse_json_response(text, expect_list=expect_list or request.mode is AiMode.AUDIT)
        return InvocationResult(provider=request.provider, text=text, data=outcome.data, parse_error=outcome.error)

    async def _invoke_frontend(self, request: InvocationRequest) -> str:
        provider = self.router.get(request.provider)
        self.guard_origin(provider.endpoint)
        try:
            return await provider.generate(request)
        except Exception as exc:  # pylint: disable=broad-except
            raise self.classifier.wrap(exc, provider.endpoint)

    async def _invoke_backend(self, request: InvocationRequest) -> str:
        base_url = self.backend.base_url
        self.guard_origin(base_url)
        retries = max(self.settings.ai_max_retries, 0)
        for attempt in range(retries + 1):
            try:
                return await self.backend.generate(request)
            except Exception as exc:  # pylint: disable=broad-except
                error = self.classifier.wrap(exc, base_url)
                logger.warning(
                    "Attempt %s/%s failed for %s: %s",
                    attempt + 1,
                    retries + 1,
                    request.provider.value,
                    exc,
                )
                if attempt == retries or not error.retryable:
                    raise error
                await self._sleep(self.settings.ai_retry_delay_seconds)
        raise GatewayError("All retry attempts failed.", endpoint=base_url)  # pragma: no cover

    async def invoke_stream(
        self,
        request: InvocationRequest,
        *,
        thinking_budget: Optional[int] = None,
    ) -> AsyncIterator[str]:
        """流式调用，按到达顺序产出文本片段；失败抛出分类后的 GatewayError。"""

        if request.execution_mode is ExecutionMode.FRONTEND:
            provider = self.router.get(request.provider)
            url = provider.endpoint
            self.guard_origin(url)
            source = provider.stream(request)
        else:
            url = self.backend.base_url
            self.guard_origin(url)
            source = self.backend.stream(request, thinking_budget=thinking_budget)

        try:
            async for chunk in source:
                yield chunk
        except Exception as exc:  # pylint: disable=broad-except
            raise self.classifier.wrap(exc, url)

    async def stream_with_callbacks(
        self,
        request: InvocationRequest,
        on_chunk: Callable[[str], None],
        on_complete: Callable[[], None],
        on_error: Callable[[GatewayError], None],
        *,
        thinking_budget: Optional[int] = None,
    ) -> None:
        """回调形式的流式调用：on_complete 与 on_error 恰好触发其一，且只触发一次。"""

        try:
            async for chunk in self.invoke_stream(request, thinking_budget=thinking_budget):
                on_chunk(chunk)
        except GatewayError as exc:
            on_error(exc)
            return
        except Exception as exc:  # pylint: disable=broad-except
            on_error(GatewayError(str(exc) or exc.__class__.__name__))
            return
        on_complete()


__all__ = ["Invoker"]
