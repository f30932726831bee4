import sys
from pathlib import Path
from typing import Callable, List, Optional

import httpx
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from common.ai.invoker import Invoker
from common.ai.providers import ProviderTable, resolve_provider_table
from common.utils.config import Settings

BACKEND_URL = "http://backend.test"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        backend_dev_url=BACKEND_URL,
        ai_retry_delay_seconds=0,
        ai_max_retries=2,
    )


@pytest.fixture
def frontend_table() -> ProviderTable:
    return resolve_provider_table(
        {
            "GEMINI_API_KEY": "g-key",
            "GEMINI_MODEL": "gemini-2.5-pro",
            "OPENAI_API_KEY": "o-key",
            "OPENAI_TARGET_URL": "https://openai.test",
            "OPENAI_MODEL": "gpt-4o",
            "DEEPSEEK_API_KEY": "d-key",
            "DEEPSEEK_ENDPOINT": "https://deepseek.test/chat/completions",
            "DEEPSEEK_MODEL": "deepseek-chat",
            "DEPOCR_API_KEY": "ocr-key",
            "DEPOCR_ENDPOINT": "https://ocr.test/v1/chat/completions",
            "DEPOCR_MODEL": "ocr-1",
        }
    )


class Recorder:
    """记录 MockTransport 收到的请求，便于断言调用次数与请求体。"""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.handler = handler
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    def paths(self) -> List[str]:
        return [request.url.path for request in self.requests]


@pytest.fixture
def make_invoker(settings):
    """构造使用 MockTransport 的 Invoker，sleep 调用会被记录下来。"""

    def _factory(
        handler: Callable[[httpx.Request], httpx.Response],
        *,
        providers: Optional[ProviderTable] = None,
        custom_settings: Optional[Settings] = None,
    ):
        recorder = Recorder(handler)
        client = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
        sleeps: List[float] = []

        async def _sleep(seconds: float) -> None:
            sleeps.append(seconds)

        invoker = Invoker(custom_settings or settings, providers, http_client=client, sleep=_sleep)
        invoker.sleeps = sleeps
        return invoker, recorder

    return _factory
