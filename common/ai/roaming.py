"""笔记漫游：先检索知识库，再对每个片段并发生成联想结论。"""

from __future__ import annotations

import asyncio
import logging
from typing import List

from common.ai.errors import NO_RELEVANT_CONTENT_MESSAGE, MalformedResponse, RetrievalFailed
from common.ai.invoker import Invoker
from common.ai.prompts import ROAMING_SYSTEM_PROMPT, roaming_user_prompt
from common.domain import (
    AiMode,
    ExecutionMode,
    InvocationRequest,
    Provider,
    RetrievedSnippet,
    RoamingResult,
    RoamingResultItem,
    RoamingStatus,
)

logger = logging.getLogger(__name__)

ROAMING_TOP_K = 3


def invalid_conclusion_message(url: str) -> str:
    return f"AI 模型未能为其中一篇文档返回有效的联想结论 ({url})。"


class RoamingWorkflow:
    """两阶段流程：检索失败立即终止；合成阶段任意一条失败则整体失败。"""

    def __init__(self, invoker: Invoker) -> None:
        self.invoker = invoker

    async def run(
        self,
        note_text: str,
        collection_name: str,
        provider: Provider,
        execution_mode: ExecutionMode = ExecutionMode.BACKEND,
    ) -> RoamingResult:
        snippets = await self._retrieve(note_text, collection_name)
        if not snippets:
            logger.info("知识库 %s 未检索到相关内容", collection_name)
            return RoamingResult(status=RoamingStatus.NO_RELEVANT_CONTENT, message=NO_RELEVANT_CONTENT_MESSAGE)

        tasks = [
            asyncio.ensure_future(self._synthesize(snippet, note_text, provider, execution_mode))
            for snippet in snippets
        ]
        try:
            items = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise
        logger.info("漫游完成 collection=%s items=%d", collection_name, len(items))
        return RoamingResult(items=list(items))

    async def _retrieve(self, note_text: str, collection_name: str) -> List[RetrievedSnippet]:
        backend = self.invoker.backend
        self.invoker.guard_origin(backend.base_url)
        try:
            return await backend.find_related(note_text, collection_name, ROAMING_TOP_K)
        except RetrievalFailed:
            raise
        except Exception as exc:  # pylint: disable=broad-except
            message = self.invoker.classifier.message_for(exc, backend.base_url)
            raise RetrievalFailed(message, endpoint=backend.base_url) from exc

    async def _synthesize(
        self,
        snippet: RetrievedSnippet,
        note_text: str,
        provider: Provider,
        execution_mode: ExecutionMode,
    ) -> RoamingResultItem:
        request = InvocationRequest(
            provider=provider,
            execution_mode=execution_mode,
            system_instruction=ROAMING_SYSTEM_PROMPT,
            user_prompt=roaming_user_prompt(snippet.content_chunk, note_text),
            want_json=True,
            mode=AiMode.ROAMING,
        )
        result = await self.invoker.invoke(request)
        conclusion = result.data.get("conclusion") if isinstance(result.data, dict) else None
        if not isinstance(conclusion, str) or not conclusion.strip():
            url = self.invoker.endpoint_for(request)
            raise MalformedResponse(invalid_conclusion_message(url), endpoint=url, raw_response=result.text)
        return RoamingResultItem(source=snippet.source_file, relevant_text=snippet.content_chunk, conclusion=conclusion)


__all__ = ["ROAMING_TOP_K", "RoamingWorkflow", "invalid_conclusion_message"]
