"""OpenAI 兼容 Provider，覆盖 openai / deepseek / ali / depOCR / doubao。"""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Dict, List

from common.ai.errors import MalformedResponse
from common.ai.providers import capabilities_for
from common.domain import ChatRole, InvocationRequest

from .base import LLMProvider
from .sse import iter_events, openai_delta_text

logger = logging.getLogger(__name__)


class OpenAICompatibleProvider(LLMProvider):
    """封装 Chat Completions 接口，endpoint 为完整地址。"""

    def _headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json", "Authorization": f"Bearer {self.config.api_key}"}

    def _attach_images(self, request: InvocationRequest) -> bool:
        if not request.images:
            return False
        if not capabilities_for(self.provider).supports_images:
            logger.warning("Provider %s 不支持图片输入，已忽略 %d 张附件", self.name, len(request.images))
            return False
        return True

    def _messages(self, request: InvocationRequest, with_images: bool) -> List[Dict[str, Any]]:
        user_content: Any = request.user_prompt
        if with_images:
            user_content = [{"type": "text", "text": request.user_prompt}] + [
                {"type": "image_url", "image_url": {"url": image.data_url}} for image in request.images
            ]
        history = [
            {"role": "assistant" if turn.role is ChatRole.MODEL else "user", "content": turn.text}
            for turn in request.prior_turns
        ]
        return [
            {"role": "system", "content": request.system_instruction},
            *history,
            {"role": "user", "content": user_content},
        ]

    async def generate(self, request: InvocationRequest) -> str:
        """构造标准 Chat Completions 请求并返回文本。"""

        with_images = self._attach_images(request)
        body: Dict[str, Any] = {
            "model": self.config.model,
            "messages": self._messages(request, with_images),
            "stream": False,
        }
        if with_images:
            body["max_tokens"] = 4096
        if request.want_json:
            body["response_format"] = {"type": "json_object"}

        response = await self._client.post(self.endpoint, json=body, headers=self._headers())
        self._raise_for_status(response, response.text)
        try:
            return response.json()["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise MalformedResponse(
                f"模型接口返回了无法识别的结构：{self.endpoint}",
                endpoint=self.endpoint,
                raw_response=response.text,
            ) from exc

    async def stream(self, request: InvocationRequest) -> AsyncIterator[str]:
        body = {
            "model": self.config.model,
            "messages": self._messages(request, with_images=False),
            "stream": True,
        }
        async with self._client.stream("POST", self.endpoint, json=body, headers=self._headers()) as response:
            if not response.is_success:
                raw = (await response.aread()).decode("utf-8", errors="replace")
                self._raise_for_status(response, raw)
            async for event in iter_events(response.aiter_bytes()):
                if event.done:
                    return
                content = openai_delta_text(event.payload)
                if content:
                    yield content
