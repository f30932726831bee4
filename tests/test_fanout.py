import asyncio
import json

import httpx

import common.ai.invoker
import common.ai.parsing
from common.ai.fanout import FanoutCoordinator, build_audit_request
from common.ai.parsing import PARSE_FAILURE_MESSAGE, parse_json_response
from common.ai.prompts import DEFAULT_CHECKLIST
from common.domain import ALL_PROVIDERS, AiMode, Provider

ISSUES = [
    {"problematicText": "按装", "suggestion": "安装", "checklistItem": "全文错别字", "explanation": "错别字"},
    {"problematicText": "因此所以", "suggestion": "因此", "checklistItem": "全文中文语法问题", "explanation": "重复连词"},
]


def _by_provider(request: httpx.Request) -> httpx.Response:
    provider = json.loads(request.content)["provider"]
    if provider == "gemini":
        return httpx.Response(200, text=json.dumps(ISSUES, ensure_ascii=False))
    if provider == "openai":
        return httpx.Response(200, text="No issues found in this text.")
    if provider == "ali":
        return httpx.Response(200, text='{"issues": [{"problematicText": "X", "suggestion": "Y"}]}')
    if provider == "deepseek":
        return httpx.Response(500, text="upstream down")
    return httpx.Response(200, text="I could not decide.")


def test_build_audit_request_uses_checklist():
    request = build_audit_request("正文", ["  规则一 ", "", "规则二"])
    assert request.want_json
    assert request.mode is AiMode.AUDIT
    assert "- 规则一\n- 规则二" in request.system_instruction
    assert request.user_prompt.endswith("正文")

    default = build_audit_request("正文")
    for item in DEFAULT_CHECKLIST:
        assert item in default.system_instruction


def test_audit_all_isolates_failures(make_invoker):
    invoker, recorder = make_invoker(_by_provider)
    results = asyncio.run(FanoutCoordinator(invoker).audit_all(build_audit_request("文本")))

    assert list(results) == ALL_PROVIDERS

    gemini = results[Provider.GEMINI]
    assert gemini.error is None
    assert [issue.problematic_text for issue in gemini.issues] == ["按装", "因此所以"]

    assert results[Provider.OPENAI].issues == []
    assert results[Provider.OPENAI].error is None

    assert results[Provider.ALI].issues[0].checklist_item == "通用规则"

    deepseek = results[Provider.DEEPSEEK]
    assert deepseek.issues == []
    assert "状态码: 500" in deepseek.error

    doubao = results[Provider.DOUBAO]
    assert doubao.error == PARSE_FAILURE_MESSAGE
    assert doubao.raw_response == "I could not decide."

    # deepseek 按重试预算请求 3 次，其余各 1 次
    assert len(recorder.requests) == len(ALL_PROVIDERS) + 2


def test_invoke_all_deduplicates_providers(make_invoker):
    invoker, recorder = make_invoker(_by_provider)
    request = build_audit_request("文本")
    results = asyncio.run(FanoutCoordinator(invoker).invoke_all([Provider.GEMINI, Provider.GEMINI], request))

    assert list(results) == [Provider.GEMINI]
    assert len(recorder.requests) == 1


def test_single_audit_reports_error_without_raising(make_invoker):
    invoker, _ = make_invoker(lambda request: httpx.Response(502))
    result = asyncio.run(FanoutCoordinator(invoker).audit(Provider.OPENAI, build_audit_request("文本")))
    assert result.issues == []
    assert "上游AI服务" in result.error


def test_each_audit_response_is_parsed_once(make_invoker, monkeypatch):
    parsed = []

    def counting_parse(text, **kwargs):
        parsed.append(text)
        return parse_json_response(text, **kwargs)

    monkeypatch.setattr(common.ai.invoker, "parse_json_response", counting_parse)
    monkeypatch.setattr(common.ai.parsing, "parse_json_response", counting_parse)

    invoker, _ = make_invoker(_by_provider)
    providers = [Provider.GEMINI, Provider.OPENAI, Provider.DOUBAO]
    results = asyncio.run(FanoutCoordinator(invoker).invoke_all(providers, build_audit_request("文本")))

    assert len(parsed) == len(providers)
    assert len(results[Provider.GEMINI].issues) == 2
    assert results[Provider.OPENAI].issues == []
    assert results[Provider.DOUBAO].error == PARSE_FAILURE_MESSAGE
    assert results[Provider.DOUBAO].raw_response == "I could not decide."
