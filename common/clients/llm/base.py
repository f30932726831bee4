"""大模型 Provider 抽象，统一 Gemini 原生接口与 OpenAI 兼容接口。"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator

import httpx

from common.ai.errors import UpstreamFailure
from common.ai.providers import ProviderConfig
from common.domain import InvocationRequest, Provider

logger = logging.getLogger(__name__)


class LLMProvider(ABC):
    """所有直连 Provider 必须实现的接口。"""

    def __init__(self, provider: Provider, config: ProviderConfig, http_client: httpx.AsyncClient) -> None:
        self.provider = provider
        self.config = config
        self._client = http_client

    @property
    def name(self) -> str:
        return self.provider.value

    @property
    def endpoint(self) -> str:
        return self.config.endpoint or ""

    @abstractmethod
    async def generate(self, request: InvocationRequest) -> str:  # pragma: no cover - 接口定义
        """执行一次非流式调用，返回纯文本。"""

    @abstractmethod
    def stream(self, request: InvocationRequest) -> AsyncIterator[str]:  # pragma: no cover - 接口定义
        """按到达顺序产出增量文本。"""

    def _raise_for_status(self, response: httpx.Response, body: str) -> None:
        if response.is_success:
            return
        logger.error("Provider %s 返回错误 status=%s body=%s", self.name, response.status_code, body[:500])
        raise UpstreamFailure(
            f"模型接口返回错误 (状态码: {response.status_code})：{self.endpoint}",
            endpoint=self.endpoint,
            status_code=response.status_code,
        )
