"""API request/response schemas."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from common.domain import (
    AiMode,
    AuditResult,
    ChatTurn,
    ExecutionMode,
    ImageAttachment,
    Provider,
    RoamingResultItem,
    RoamingStatus,
)

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    code: int
    msg: str
    data: Optional[T] = None


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class GenerateRequest(_CamelModel):
    provider: Provider
    execution_mode: Optional[ExecutionMode] = Field(None, alias="executionMode")
    system_instruction: str = Field("", alias="systemInstruction")
    user_prompt: str = Field(..., alias="userPrompt")
    json_response: bool = Field(False, alias="jsonResponse")
    mode: Optional[AiMode] = None
    history: List[ChatTurn] = Field(default_factory=list)
    images: List[ImageAttachment] = Field(default_factory=list)


class StreamRequest(_CamelModel):
    provider: Provider
    execution_mode: Optional[ExecutionMode] = Field(None, alias="executionMode")
    system_instruction: str = Field("", alias="systemInstruction")
    user_prompt: str = Field(..., alias="userPrompt")
    history: List[ChatTurn] = Field(default_factory=list)
    thinking_budget: Optional[int] = Field(None, alias="thinkingBudget")


class GenerateData(BaseModel):
    text: str
    data: Any = None
    parse_error: Optional[str] = Field(None, serialization_alias="parseError")


class AuditRequest(_CamelModel):
    text: str
    checklist: Optional[List[str]] = Field(None, description="审阅规则，缺省使用默认清单")
    providers: Optional[List[Provider]] = Field(None, description="缺省时使用全部模型")
    execution_mode: Optional[ExecutionMode] = Field(None, alias="executionMode")


class AuditData(BaseModel):
    results: Dict[str, AuditResult]


class RoamingRequest(_CamelModel):
    text: str = Field(..., description="整理后的笔记正文")
    collection_name: str = Field(..., alias="collectionName")
    provider: Provider
    execution_mode: Optional[ExecutionMode] = Field(None, alias="executionMode")


class RoamingData(BaseModel):
    status: RoamingStatus
    items: List[RoamingResultItem]


class ErrorData(BaseModel):
    kind: str
    endpoint: Optional[str] = None
    raw_response: Optional[str] = Field(None, serialization_alias="rawResponse")


class ProviderStatus(BaseModel):
    provider: Provider
    wire: str
    supports_images: bool
    frontend_ready: bool


# ======================== SSE Event Types ========================


class SSEEventType(str, Enum):
    """SSE event types for streaming generation."""

    TEXT_DELTA = "text_delta"
    DONE = "done"
    ERROR = "error"


class SSETextDeltaEvent(BaseModel):
    """Streaming text fragment event."""

    type: str = SSEEventType.TEXT_DELTA.value
    content: str


class SSEDoneEvent(BaseModel):
    """Stream completion event."""

    type: str = SSEEventType.DONE.value


class SSEErrorEvent(BaseModel):
    """Error event."""

    type: str = SSEEventType.ERROR.value
    message: str
    kind: Optional[str] = None
