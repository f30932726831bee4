"""前端直连 Provider 路由器：按能力表选择 Gemini 原生或 OpenAI 兼容实现。"""

from __future__ import annotations

from typing import Dict

import httpx

from common.ai.errors import ProviderMisconfigured
from common.ai.providers import ProviderTable, WireFormat, capabilities_for
from common.domain import Provider

from .base import LLMProvider
from .gemini_provider import GeminiProvider
from .openai_provider import OpenAICompatibleProvider

_IMPLEMENTATIONS = {
    WireFormat.GEMINI: GeminiProvider,
    WireFormat.OPENAI_COMPATIBLE: OpenAICompatibleProvider,
}

_FIELD_ENV_SUFFIX = {"api_key": "API_KEY", "endpoint": "ENDPOINT", "model": "MODEL"}


class ProviderRouter:
    """根据配置表构造 Provider，并在首次使用时缓存。"""

    def __init__(self, table: ProviderTable, http_client: httpx.AsyncClient) -> None:
        self._table = table
        self._client = http_client
        self._registry: Dict[Provider, LLMProvider] = {}

    def get(self, provider: Provider) -> LLMProvider:
        """
        返回可用于直连的 Provider。
        配置缺失时抛 ProviderMisconfigured，不做任何网络请求。
        """

        cached = self._registry.get(provider)
        if cached is not None:
            return cached

        config = self._table.get(provider)
        missing = config.missing_fields(provider)
        if missing:
            env_names = "、".join(f"{provider.value.upper()}_{_FIELD_ENV_SUFFIX[field]}" for field in missing)
            raise ProviderMisconfigured(
                f"前端直连模式下 {provider.value} 未配置完整，请在环境变量中设置 {env_names}。",
                endpoint=config.endpoint,
            )

        implementation = _IMPLEMENTATIONS[capabilities_for(provider).wire]
        instance = implementation(provider, config, self._client)
        self._registry[provider] = instance
        return instance
