"""领域模型导出，便于其它模块统一引入。"""

from .models import (
    ALL_PROVIDERS,
    AiMode,
    AuditIssue,
    AuditResult,
    ChatRole,
    ChatTurn,
    ExecutionMode,
    ImageAttachment,
    InvocationRequest,
    InvocationResult,
    Provider,
    RetrievedSnippet,
    RoamingResult,
    RoamingResultItem,
    RoamingStatus,
)

__all__ = [
    "ALL_PROVIDERS",
    "AiMode",
    "AuditIssue",
    "AuditResult",
    "ChatRole",
    "ChatTurn",
    "ExecutionMode",
    "ImageAttachment",
    "InvocationRequest",
    "InvocationResult",
    "Provider",
    "RetrievedSnippet",
    "RoamingResult",
    "RoamingResultItem",
    "RoamingStatus",
]
