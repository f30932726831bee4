"""Domain data models shared across modules."""

from __future__ import annotations

from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Provider(str, Enum):
    """可选的大模型服务，固定集合。"""

    GEMINI = "gemini"
    OPENAI = "openai"
    DEEPSEEK = "deepseek"
    ALI = "ali"
    DEPOCR = "depOCR"
    DOUBAO = "doubao"


ALL_PROVIDERS: List[Provider] = list(Provider)


class ExecutionMode(str, Enum):
    """backend 经可信代理转发；frontend 用本地凭证直连 Provider。"""

    BACKEND = "backend"
    FRONTEND = "frontend"


class AiMode(str, Enum):
    """调用场景标签，随请求透传给后端代理。"""

    NOTES = "notes"
    AUDIT = "audit"
    ROAMING = "roaming"
    WRITING = "writing"
    OCR = "ocr"


class ChatRole(str, Enum):
    USER = "user"
    MODEL = "model"


class ChatTurn(BaseModel):
    """一轮历史对话。"""

    model_config = ConfigDict(frozen=True)

    role: ChatRole
    text: str

    def to_wire(self) -> dict:
        """后端代理与 Gemini 共用的 {role, parts} 结构。"""

        return {"role": self.role.value, "parts": [{"text": self.text}]}


class ImageAttachment(BaseModel):
    """Base64 编码的图片附件。"""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    base64: str
    mime_type: str = Field(..., alias="mimeType")

    def to_wire(self) -> dict:
        return {"base64": self.base64, "mimeType": self.mime_type}

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.base64}"


class InvocationRequest(BaseModel):
    """描述一次模型调用，发出后不可修改。"""

    model_config = ConfigDict(frozen=True)

    provider: Provider
    execution_mode: ExecutionMode = ExecutionMode.BACKEND
    system_instruction: str = ""
    user_prompt: str
    want_json: bool = False
    mode: Optional[AiMode] = None
    prior_turns: List[ChatTurn] = Field(default_factory=list)
    images: List[ImageAttachment] = Field(default_factory=list)

    def for_provider(self, provider: Provider) -> "InvocationRequest":
        """同一请求换一个 Provider，用于多模型并发。"""

        return self.model_copy(update={"provider": provider})


class InvocationResult(BaseModel):
    """一次调用的结果；结构化模式下附带解析值或解析错误。"""

    provider: Provider
    text: str
    data: Any = None
    parse_error: Optional[str] = None

    @property
    def parsed(self) -> bool:
        return self.parse_error is None and self.data is not None


class AuditIssue(BaseModel):
    """单条审阅问题，problematicText 用于原文高亮定位。"""

    model_config = ConfigDict(populate_by_name=True)

    problematic_text: str = Field(..., alias="problematicText")
    suggestion: str = ""
    checklist_item: str = Field("通用规则", alias="checklistItem")
    explanation: str = "无详细说明"


class AuditResult(BaseModel):
    """单个 Provider 的审阅结果，互相独立。"""

    model_config = ConfigDict(populate_by_name=True)

    issues: List[AuditIssue] = Field(default_factory=list)
    error: Optional[str] = None
    raw_response: Optional[str] = Field(None, alias="rawResponse")


class RetrievedSnippet(BaseModel):
    """知识库检索返回的片段。"""

    source_file: str = ""
    content_chunk: str = ""
    score: float = 0.0


class RoamingResultItem(BaseModel):
    """每个检索片段对应一条联想结论，顺序与检索排名一致。"""

    model_config = ConfigDict(populate_by_name=True)

    source: str
    relevant_text: str = Field(..., alias="relevantText")
    conclusion: str


class RoamingStatus(str, Enum):
    OK = "ok"
    NO_RELEVANT_CONTENT = "no_relevant_content"


class RoamingResult(BaseModel):
    """漫游结果；知识库无相关内容时 items 为空并附带提示文案。"""

    status: RoamingStatus = RoamingStatus.OK
    items: List[RoamingResultItem] = Field(default_factory=list)
    message: Optional[str] = None
