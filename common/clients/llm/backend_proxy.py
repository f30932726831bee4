"""后端代理客户端：/generate、/generate-stream 与知识库 /find-related。"""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from common.ai.errors import RetrievalFailed, UpstreamFailure, upstream_message
from common.domain import InvocationRequest, RetrievedSnippet

from .sse import iter_events, iter_raw_text, openai_delta_text

logger = logging.getLogger(__name__)

EVENT_STREAM_CONTENT_TYPE = "text/event-stream"


class BackendProxyClient:
    """所有请求都发往同一个可信代理，Provider 名称放在请求体里。"""

    def __init__(self, base_url: str, http_client: httpx.AsyncClient) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = http_client

    def url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _raise_for_status(self, response: httpx.Response, body: str) -> None:
        if response.is_success:
            return
        logger.error("Backend raw error status=%s body=%s", response.status_code, body[:500])
        raise UpstreamFailure(
            upstream_message(response.status_code, self.base_url),
            endpoint=self.base_url,
            status_code=response.status_code,
        )

    async def generate(self, request: InvocationRequest) -> str:
        body: Dict[str, Any] = {
            "provider": request.provider.value,
            "systemInstruction": request.system_instruction,
            "userPrompt": request.user_prompt,
            "jsonResponse": request.want_json,
            "mode": request.mode.value if request.mode else None,
            "history": [turn.to_wire() for turn in request.prior_turns],
        }
        if request.images:
            body["images"] = [image.to_wire() for image in request.images]
        response = await self._client.post(self.url("generate"), json=body)
        self._raise_for_status(response, response.text)
        return response.text

    async def stream(self, request: InvocationRequest, thinking_budget: Optional[int] = None) -> AsyncIterator[str]:
        """
        支持两种返回形态：

        - text/event-stream：data: 行携带 choices[0].delta.content，[DONE] 结束
        - 其它：原始字节流，按到达顺序原样转发
        """

        body: Dict[str, Any] = {
            "provider": request.provider.value,
            "systemInstruction": request.system_instruction,
            "userPrompt": request.user_prompt,
            "history": [turn.to_wire() for turn in request.prior_turns],
        }
        if thinking_budget is not None:
            body["thinkingBudget"] = thinking_budget
        async with self._client.stream("POST", self.url("generate-stream"), json=body) as response:
            if not response.is_success:
                raw = (await response.aread()).decode("utf-8", errors="replace")
                self._raise_for_status(response, raw)
            content_type = response.headers.get("content-type", "")
            if EVENT_STREAM_CONTENT_TYPE in content_type:
                async for event in iter_events(response.aiter_bytes()):
                    if event.done:
                        return
                    text = openai_delta_text(event.payload)
                    if text:
                        yield text
            else:
                async for text in iter_raw_text(response.aiter_bytes()):
                    yield text

    async def find_related(self, text: str, collection_name: str, top_k: int) -> List[RetrievedSnippet]:
        """查询知识库相关片段，任何异常情况都以 RetrievalFailed 抛出。"""

        response = await self._client.post(
            self.url("find-related"),
            json={"text": text, "collection_name": collection_name, "top_k": top_k},
        )
        body = response.text
        if not response.is_success:
            detail = body or response.reason_phrase
            try:
                detail = json.loads(body).get("error") or detail
            except (ValueError, AttributeError):
                pass
            raise RetrievalFailed(f"知识库查询失败: {detail}", endpoint=self.base_url)
        if not body:
            raise RetrievalFailed("知识库查询返回为空。", endpoint=self.base_url)
        try:
            data = json.loads(body)
        except ValueError as exc:
            logger.error("Error parsing backend JSON: %s", body[:500])
            raise RetrievalFailed(f"后端返回了无效的 JSON: {exc}", endpoint=self.base_url) from exc
        if not isinstance(data, dict):
            raise RetrievalFailed(f"后端返回了无效的 JSON: {body[:200]}", endpoint=self.base_url)
        if data.get("error"):
            raise RetrievalFailed(f"知识库返回错误: {data['error']}", endpoint=self.base_url)

        snippets: List[RetrievedSnippet] = []
        for doc in data.get("related_documents") or []:
            if not isinstance(doc, dict):
                continue
            snippets.append(
                RetrievedSnippet(
                    source_file=str(doc.get("source_file") or ""),
                    content_chunk=str(doc.get("content_chunk") or ""),
                    score=_as_float(doc.get("score")),
                )
            )
        return snippets


def _as_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0
