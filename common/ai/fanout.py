"""多模型并发审阅：同一请求发给多个 Provider，各自结果互不影响。"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Iterable, List, Optional

from common.ai.errors import GatewayError
from common.ai.invoker import Invoker
from common.ai.parsing import ParseOutcome, build_audit_result, parse_audit_response
from common.ai.prompts import DEFAULT_CHECKLIST, audit_system_prompt, audit_user_prompt
from common.domain import (
    ALL_PROVIDERS,
    AiMode,
    AuditResult,
    ExecutionMode,
    InvocationRequest,
    InvocationResult,
    Provider,
)

logger = logging.getLogger(__name__)

AuditResults = Dict[Provider, AuditResult]


def _audit_result(request: InvocationRequest, result: InvocationResult) -> AuditResult:
    # want_json 时 Invoker 已解析过一次，直接复用
    if not request.want_json:
        return parse_audit_response(result.text)
    raw = result.text if result.parse_error else None
    outcome = ParseOutcome(data=result.data, error=result.parse_error, raw_response=raw)
    return build_audit_result(outcome, result.text)


def build_audit_request(
    text: str,
    checklist: Optional[Iterable[str]] = None,
    *,
    provider: Provider = Provider.GEMINI,
    execution_mode: ExecutionMode = ExecutionMode.BACKEND,
) -> InvocationRequest:
    """按审阅清单构造结构化请求，空白清单项会被忽略。"""

    return InvocationRequest(
        provider=provider,
        execution_mode=execution_mode,
        system_instruction=audit_system_prompt(checklist if checklist is not None else DEFAULT_CHECKLIST),
        user_prompt=audit_user_prompt(text),
        want_json=True,
        mode=AiMode.AUDIT,
    )


class FanoutCoordinator:
    """并发调用多个 Provider，批次整体永不失败。"""

    def __init__(self, invoker: Invoker) -> None:
        self.invoker = invoker

    async def invoke_all(self, providers: Iterable[Provider], request: InvocationRequest) -> AuditResults:
        """
        每个 Provider 发起一次调用并等待全部结束。

        调用失败的 Provider 记为空问题列表 + 错误信息；
        成功的按各自响应解析，问题顺序保持模型返回的顺序。
        """

        targets: List[Provider] = list(dict.fromkeys(providers))
        outcomes = await asyncio.gather(
            *(self.invoker.invoke(request.for_provider(provider), expect_list=True) for provider in targets),
            return_exceptions=True,
        )

        results: AuditResults = {}
        for provider, outcome in zip(targets, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                logger.warning("Provider %s 审阅失败: %s", provider.value, outcome)
                message = outcome.message if isinstance(outcome, GatewayError) else str(outcome)
                results[provider] = AuditResult(issues=[], error=message or outcome.__class__.__name__)
                continue
            results[provider] = _audit_result(request, outcome)
            logger.info(
                "Provider %s 审阅完成 issues=%d error=%s",
                provider.value,
                len(results[provider].issues),
                results[provider].error,
            )
        return results

    async def audit(self, provider: Provider, request: InvocationRequest) -> AuditResult:
        """单模型审阅，与批量审阅使用同一套错误隔离。"""

        results = await self.invoke_all([provider], request)
        return results[provider]

    async def audit_all(self, request: InvocationRequest) -> AuditResults:
        return await self.invoke_all(ALL_PROVIDERS, request)


__all__ = ["AuditResults", "FanoutCoordinator", "build_audit_request"]
