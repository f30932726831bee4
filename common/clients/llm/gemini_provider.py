"""Gemini Provider，直接调用 generativelanguage REST 接口。"""

from __future__ import annotations

from typing import Any, AsyncIterator, Dict, List

from common.ai.errors import MalformedResponse
from common.ai.providers import GEMINI_VISION_MODEL
from common.domain import InvocationRequest

from .base import LLMProvider
from .sse import iter_events


def _candidate_text(payload: Any) -> str:
    """拼接 candidates[0].content.parts 中的文本，结构不符返回空串。"""

    try:
        parts = payload["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError):
        return ""
    return "".join(part.get("text", "") for part in parts if isinstance(part, dict))


class GeminiProvider(LLMProvider):
    """封装 generateContent / streamGenerateContent。"""

    def _headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json", "x-goog-api-key": self.config.api_key or ""}

    def _url(self, model: str, action: str) -> str:
        return f"{self.endpoint.rstrip('/')}/models/{model}:{action}"

    def _body(self, request: InvocationRequest, with_images: bool) -> Dict[str, Any]:
        user_parts: List[Dict[str, Any]] = [{"text": request.user_prompt}]
        if with_images:
            image_parts = [
                {"inlineData": {"mimeType": image.mime_type, "data": image.base64}} for image in request.images
            ]
            user_parts = image_parts + user_parts
        body: Dict[str, Any] = {
            "contents": [turn.to_wire() for turn in request.prior_turns] + [{"role": "user", "parts": user_parts}],
        }
        if request.system_instruction:
            body["systemInstruction"] = {"parts": [{"text": request.system_instruction}]}
        if request.want_json:
            body["generationConfig"] = {"responseMimeType": "application/json"}
        return body

    async def generate(self, request: InvocationRequest) -> str:
        with_images = bool(request.images)
        # 带图片时固定使用视觉模型
        model = GEMINI_VISION_MODEL if with_images else self.config.model
        response = await self._client.post(
            self._url(model, "generateContent"),
            json=self._body(request, with_images),
            headers=self._headers(),
        )
        self._raise_for_status(response, response.text)
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if not isinstance(payload, dict) or not payload.get("candidates"):
            raise MalformedResponse(
                f"Gemini 未返回任何候选结果：{self.endpoint}",
                endpoint=self.endpoint,
                raw_response=response.text,
            )
        return _candidate_text(payload)

    async def stream(self, request: InvocationRequest) -> AsyncIterator[str]:
        url = self._url(self.config.model, "streamGenerateContent") + "?alt=sse"
        body = self._body(request, with_images=False)
        async with self._client.stream("POST", url, json=body, headers=self._headers()) as response:
            if not response.is_success:
                raw = (await response.aread()).decode("utf-8", errors="replace")
                self._raise_for_status(response, raw)
            async for event in iter_events(response.aiter_bytes()):
                if event.done:
                    return
                text = _candidate_text(event.payload)
                if text:
                    yield text
