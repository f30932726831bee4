"""AI 网关路由：单次生成、流式生成、多模型审阅与笔记漫游。"""

from __future__ import annotations

import json
import logging
from typing import AsyncGenerator, List, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from api_gateway.deps import get_app_settings, get_fanout, get_invoker, get_roaming
from api_gateway.schemas import (
    AuditData,
    AuditRequest,
    Envelope,
    GenerateData,
    GenerateRequest,
    ProviderStatus,
    RoamingData,
    RoamingRequest,
    SSEDoneEvent,
    SSEErrorEvent,
    SSETextDeltaEvent,
    StreamRequest,
)
from common.ai.errors import GatewayError
from common.ai.fanout import FanoutCoordinator, build_audit_request
from common.ai.invoker import Invoker
from common.ai.providers import capabilities_for
from common.ai.roaming import RoamingWorkflow
from common.domain import ALL_PROVIDERS, ExecutionMode, InvocationRequest, RoamingStatus
from common.utils.config import Settings

logger = logging.getLogger(__name__)
router = APIRouter()


def _safe_json_dumps(obj) -> str:
    return json.dumps(obj, ensure_ascii=False)


def _sse_line(data: str) -> str:
    """Format a single SSE event line."""
    return f"data: {data}\n\n"


def _resolve_mode(requested: Optional[ExecutionMode], settings: Settings) -> ExecutionMode:
    if requested is not None:
        return requested
    return ExecutionMode(settings.ai_execution_mode)


@router.post("/generate", response_model=Envelope[GenerateData])
async def generate(
    payload: GenerateRequest,
    invoker: Invoker = Depends(get_invoker),
    settings: Settings = Depends(get_app_settings),
) -> Envelope[GenerateData]:
    request = InvocationRequest(
        provider=payload.provider,
        execution_mode=_resolve_mode(payload.execution_mode, settings),
        system_instruction=payload.system_instruction,
        user_prompt=payload.user_prompt,
        want_json=payload.json_response,
        mode=payload.mode,
        prior_turns=payload.history,
        images=payload.images,
    )
    result = await invoker.invoke(request)
    data = GenerateData(text=result.text, data=result.data, parse_error=result.parse_error)
    return Envelope(code=0, msg="success", data=data)


@router.post("/generate/stream")
async def generate_stream(
    payload: StreamRequest,
    invoker: Invoker = Depends(get_invoker),
    settings: Settings = Depends(get_app_settings),
) -> StreamingResponse:
    """以 SSE 形式逐段返回模型输出，出错时发送 error 事件后结束。"""

    request = InvocationRequest(
        provider=payload.provider,
        execution_mode=_resolve_mode(payload.execution_mode, settings),
        system_instruction=payload.system_instruction,
        user_prompt=payload.user_prompt,
        prior_turns=payload.history,
    )

    async def event_generator() -> AsyncGenerator[str, None]:
        try:
            async for chunk in invoker.invoke_stream(request, thinking_budget=payload.thinking_budget):
                yield _sse_line(_safe_json_dumps(SSETextDeltaEvent(content=chunk).model_dump()))
            yield _sse_line(_safe_json_dumps(SSEDoneEvent().model_dump()))
        except GatewayError as exc:
            logger.warning("流式生成失败 provider=%s: %s", request.provider.value, exc.message)
            yield _sse_line(_safe_json_dumps(SSEErrorEvent(message=exc.message, kind=exc.kind.value).model_dump()))

        yield "data: [DONE]\n\n"

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.post("/audit", response_model=Envelope[AuditData])
async def audit(
    payload: AuditRequest,
    fanout: FanoutCoordinator = Depends(get_fanout),
    settings: Settings = Depends(get_app_settings),
) -> Envelope[AuditData]:
    """未指定 providers 时对全部模型并发审阅，单个模型失败不影响整体。"""

    request = build_audit_request(
        payload.text,
        payload.checklist,
        execution_mode=_resolve_mode(payload.execution_mode, settings),
    )
    providers = payload.providers or ALL_PROVIDERS
    results = await fanout.invoke_all(providers, request)
    data = AuditData(results={provider.value: result for provider, result in results.items()})
    return Envelope(code=0, msg="success", data=data)


@router.post("/roaming", response_model=Envelope[RoamingData])
async def roaming(
    payload: RoamingRequest,
    workflow: RoamingWorkflow = Depends(get_roaming),
    settings: Settings = Depends(get_app_settings),
) -> Envelope[RoamingData]:
    result = await workflow.run(
        payload.text,
        payload.collection_name,
        payload.provider,
        _resolve_mode(payload.execution_mode, settings),
    )
    data = RoamingData(status=result.status, items=result.items)
    msg = result.message if result.status is RoamingStatus.NO_RELEVANT_CONTENT else "success"
    return Envelope(code=0, msg=msg or "success", data=data)


@router.get("/providers", response_model=Envelope[List[ProviderStatus]])
async def list_providers(invoker: Invoker = Depends(get_invoker)) -> Envelope[List[ProviderStatus]]:
    """各 Provider 的能力与直连配置状态，不返回任何凭证。"""

    items = []
    for provider in ALL_PROVIDERS:
        caps = capabilities_for(provider)
        items.append(
            ProviderStatus(
                provider=provider,
                wire=caps.wire.value,
                supports_images=caps.supports_images,
                frontend_ready=invoker.providers.frontend_ready(provider),
            )
        )
    return Envelope(code=0, msg="success", data=items)
