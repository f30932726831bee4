"""Provider 配置解析与能力表：Gemini 原生接口 + 五个 OpenAI 兼容接口。"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional

from common.domain import Provider
from common.utils.config import Settings
from common.utils.env import clean_env

logger = logging.getLogger(__name__)

GEMINI_DEFAULT_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta"
GEMINI_VISION_MODEL = "gemini-2.5-flash"


class WireFormat(str, Enum):
    GEMINI = "gemini"
    OPENAI_COMPATIBLE = "openai_compatible"


@dataclass(frozen=True)
class ProviderCapabilities:
    wire: WireFormat
    supports_images: bool = True
    requires_endpoint: bool = True


CAPABILITIES: Mapping[Provider, ProviderCapabilities] = MappingProxyType(
    {
        Provider.GEMINI: ProviderCapabilities(wire=WireFormat.GEMINI, requires_endpoint=False),
        Provider.OPENAI: ProviderCapabilities(wire=WireFormat.OPENAI_COMPATIBLE),
        Provider.DEEPSEEK: ProviderCapabilities(wire=WireFormat.OPENAI_COMPATIBLE, supports_images=False),
        Provider.ALI: ProviderCapabilities(wire=WireFormat.OPENAI_COMPATIBLE),
        Provider.DEPOCR: ProviderCapabilities(wire=WireFormat.OPENAI_COMPATIBLE),
        Provider.DOUBAO: ProviderCapabilities(wire=WireFormat.OPENAI_COMPATIBLE),
    }
)


def capabilities_for(provider: Provider) -> ProviderCapabilities:
    return CAPABILITIES[provider]


@dataclass(frozen=True)
class ProviderConfig:
    """单个 Provider 的前端直连配置，字段缺失只影响 frontend 模式。"""

    api_key: Optional[str] = None
    endpoint: Optional[str] = None
    model: Optional[str] = None

    def missing_fields(self, provider: Provider) -> List[str]:
        """返回 frontend 模式缺少的字段名，空列表表示可用。"""

        missing: List[str] = []
        if not self.model:
            missing.append("model")
        if not self.api_key:
            missing.append("api_key")
        if capabilities_for(provider).requires_endpoint and not self.endpoint:
            missing.append("endpoint")
        return missing


class ProviderTable:
    """进程级只读配置表，初始化后不再修改。"""

    def __init__(self, configs: Mapping[Provider, ProviderConfig]) -> None:
        self._configs = MappingProxyType(dict(configs))

    def get(self, provider: Provider) -> ProviderConfig:
        return self._configs.get(provider, ProviderConfig())

    def __iter__(self):
        return iter(self._configs)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ProviderTable):
            return NotImplemented
        return dict(self._configs) == dict(other._configs)

    def frontend_ready(self, provider: Provider) -> bool:
        return not self.get(provider).missing_fields(provider)


def _env_prefix(provider: Provider) -> str:
    return provider.value.upper()


def _compose_endpoint(raw: Mapping[str, Optional[str]], prefix: str) -> Optional[str]:
    """显式 ENDPOINT 优先，否则由 TARGET_URL 拼出 chat/completions 地址。"""

    endpoint = clean_env(raw.get(f"{prefix}_ENDPOINT"))
    if endpoint:
        return endpoint
    target = clean_env(raw.get(f"{prefix}_TARGET_URL"))
    if target:
        return f"{target.rstrip('/')}/v1/chat/completions"
    return None


def resolve_provider_table(raw: Mapping[str, Optional[str]]) -> ProviderTable:
    """
    把环境变量形式的原始字符串整理成 ProviderTable。

    纯函数、无 I/O，可重复调用；字段缺失不报错，到 frontend 调用时才校验。
    """

    configs: Dict[Provider, ProviderConfig] = {}
    for provider in Provider:
        prefix = _env_prefix(provider)
        endpoint = _compose_endpoint(raw, prefix)
        if provider is Provider.GEMINI and not endpoint:
            endpoint = GEMINI_DEFAULT_ENDPOINT
        configs[provider] = ProviderConfig(
            api_key=clean_env(raw.get(f"{prefix}_API_KEY")),
            endpoint=endpoint,
            model=clean_env(raw.get(f"{prefix}_MODEL")),
        )
    return ProviderTable(configs)


def load_provider_table(settings: Settings) -> ProviderTable:
    table = resolve_provider_table(settings.provider_env())
    ready = [p.value for p in Provider if table.frontend_ready(p)]
    logger.info("Provider 配置已加载，可前端直连: %s", ", ".join(ready) or "无")
    return table


__all__ = [
    "CAPABILITIES",
    "GEMINI_DEFAULT_ENDPOINT",
    "GEMINI_VISION_MODEL",
    "ProviderCapabilities",
    "ProviderConfig",
    "ProviderTable",
    "WireFormat",
    "capabilities_for",
    "load_provider_table",
    "resolve_provider_table",
]
