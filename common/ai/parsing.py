"""从模型的自由文本中恢复 JSON，并把审阅结果整理成 AuditIssue 列表。"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional

from common.domain import AuditIssue, AuditResult

logger = logging.getLogger(__name__)

PARSE_FAILURE_MESSAGE = "未能将模型响应解析为有效的JSON。"
UNEXPECTED_SHAPE_MESSAGE = "模型返回了意外的 JSON 格式 (既不是数组，也不是包含 'issues' 的对象，也不是单个问题对象)。"
PLACEHOLDER_TEXT = "(未指定文本)"
DEFAULT_CHECKLIST_ITEM = "通用规则"
DEFAULT_EXPLANATION = "无详细说明"

# 模型直接用文字回答“没有问题”时的常见说法
NO_ISSUE_SENTINELS = (
    "no issues found",
    "no issue found",
    "没有发现",
    "未发现",
    "沒有發現",
    "未發現",
    "問題は見つかりません",
)

# 审阅结果可能包在对象的这些键下
ISSUE_LIST_KEYS = ("issues", "problems", "results")

_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)

_MISSING = object()


@dataclass
class ParseOutcome:
    """解析结果；失败时保留原始文本用于展示。"""

    data: Any = None
    error: Optional[str] = None
    raw_response: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _try_parse(text: str) -> Any:
    """先直接解析，再去掉尾逗号重试；都失败返回 _MISSING。"""

    for candidate in (text, _TRAILING_COMMA.sub(r"\1", text)):
        try:
            value = json.loads(candidate)
        except ValueError:
            continue
        if value is not None:
            return value
    return _MISSING


def _outer_span(text: str) -> Optional[str]:
    first_bracket, last_bracket = text.find("["), text.rfind("]")
    if first_bracket != -1 and last_bracket > first_bracket:
        return text[first_bracket : last_bracket + 1]
    first_brace, last_brace = text.find("{"), text.rfind("}")
    if first_brace != -1 and last_brace > first_brace:
        return text[first_brace : last_brace + 1]
    return None


def _mentions_no_issues(text: str) -> bool:
    lowered = text.lower()
    return any(sentinel in lowered for sentinel in NO_ISSUE_SENTINELS)


def parse_json_response(response_text: str, *, expect_list: bool = False) -> ParseOutcome:
    """
    按固定顺序尝试恢复 JSON，首个成功即返回：

    1. 整段文本直接解析（含去尾逗号）
    2. ```json 代码块内部
    3. 最外层 [...]，否则 {...}
    4. 期望列表且文本声明“未发现问题”时返回空列表
    """

    text = response_text.strip()

    value = _try_parse(text)
    if value is _MISSING:
        fenced = _FENCED_BLOCK.search(text)
        if fenced and fenced.group(1):
            value = _try_parse(fenced.group(1).strip())
    if value is _MISSING:
        span = _outer_span(text)
        if span is not None:
            value = _try_parse(span)

    if value is not _MISSING:
        return ParseOutcome(data=value)
    if expect_list and _mentions_no_issues(response_text):
        return ParseOutcome(data=[])
    return ParseOutcome(error=PARSE_FAILURE_MESSAGE, raw_response=response_text)


class PayloadShape(str, Enum):
    LIST = "list"
    WRAPPED = "wrapped"
    SINGLE = "single"
    UNRECOGNIZED = "unrecognized"


@dataclass
class AuditPayload:
    shape: PayloadShape
    items: List[Any]


def classify_audit_payload(data: Any) -> AuditPayload:
    """先判定返回结构，再做字段提取。"""

    if isinstance(data, list):
        return AuditPayload(PayloadShape.LIST, data)
    if isinstance(data, dict):
        for key in ISSUE_LIST_KEYS:
            if isinstance(data.get(key), list):
                return AuditPayload(PayloadShape.WRAPPED, data[key])
        if "problematicText" in data and "suggestion" in data:
            return AuditPayload(PayloadShape.SINGLE, [data])
    return AuditPayload(PayloadShape.UNRECOGNIZED, [])


def _text_field(item: dict, key: str) -> Optional[str]:
    value = item.get(key)
    if isinstance(value, str) and value:
        return value
    return None


def rebuild_issue(item: Any) -> Optional[AuditIssue]:
    """逐字段重建单条问题；缺主字段时尽量挽救，无法挽救返回 None，不抛异常。"""

    if not isinstance(item, dict):
        return None
    problematic = _text_field(item, "problematicText")
    suggestion = _text_field(item, "suggestion")
    explanation = _text_field(item, "explanation") or _text_field(item, "reason")
    if problematic is None:
        if suggestion is None and explanation is None:
            return None
        problematic = PLACEHOLDER_TEXT
    return AuditIssue(
        problematic_text=problematic,
        suggestion=suggestion or "",
        checklist_item=_text_field(item, "checklistItem") or DEFAULT_CHECKLIST_ITEM,
        explanation=explanation or DEFAULT_EXPLANATION,
    )


def build_audit_result(outcome: ParseOutcome, response_text: str) -> AuditResult:
    """由已完成的 JSON 解析结果生成 AuditResult，不再重复解析。"""

    if not outcome.ok:
        return AuditResult(issues=[], error=outcome.error, raw_response=outcome.raw_response)

    payload = classify_audit_payload(outcome.data)
    if payload.shape is PayloadShape.UNRECOGNIZED:
        return AuditResult(issues=[], error=UNEXPECTED_SHAPE_MESSAGE, raw_response=response_text)

    issues = [issue for issue in (rebuild_issue(item) for item in payload.items) if issue is not None]
    dropped = len(payload.items) - len(issues)
    if dropped:
        logger.info("审阅结果中丢弃 %d 条无效问题", dropped)
    return AuditResult(issues=issues)


def parse_audit_response(response_text: str) -> AuditResult:
    """把单个 Provider 的审阅输出转换为 AuditResult。"""

    return build_audit_result(parse_json_response(response_text, expect_list=True), response_text)


__all__ = [
    "AuditPayload",
    "NO_ISSUE_SENTINELS",
    "ParseOutcome",
    "PayloadShape",
    "build_audit_result",
    "classify_audit_payload",
    "parse_audit_response",
    "parse_json_response",
    "rebuild_issue",
]
