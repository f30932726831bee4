import json

import httpx
import pytest
from fastapi.testclient import TestClient

from api_gateway.deps import get_app_settings, get_invoker
from api_gateway.main import create_app
from common.ai.errors import NO_RELEVANT_CONTENT_MESSAGE


def _backend(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/find-related":
        return httpx.Response(200, json={"related_documents": []})
    if request.url.path == "/generate-stream":
        body = json.loads(request.content)
        if body["provider"] == "openai":
            return httpx.Response(500, text="boom")
        return httpx.Response(
            200,
            headers={"content-type": "text/event-stream"},
            text='data: {"choices": [{"delta": {"content": "你"}}]}\n\n'
            'data: {"choices": [{"delta": {"content": "好"}}]}\n\n'
            "data: [DONE]\n\n",
        )
    body = json.loads(request.content)
    if body["provider"] == "deepseek":
        return httpx.Response(502, text="bad gateway")
    if body["mode"] == "audit":
        return httpx.Response(200, text='[{"problematicText": "错子", "suggestion": "错字"}]')
    return httpx.Response(200, text='{"answer": 42}')


@pytest.fixture
def client(settings, make_invoker):
    invoker, recorder = make_invoker(_backend)
    app = create_app(settings)
    app.dependency_overrides[get_invoker] = lambda: invoker
    app.dependency_overrides[get_app_settings] = lambda: settings
    test_client = TestClient(app)
    test_client.recorder = recorder
    return test_client


def _events(text: str):
    lines = [line[len("data: "):] for line in text.split("\n\n") if line.startswith("data: ")]
    return [line if line == "[DONE]" else json.loads(line) for line in lines]


def test_health_check(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json()["data"] == {"status": "ok"}


def test_generate_returns_parsed_json(client):
    response = client.post(
        "/v1/ai/generate",
        json={"provider": "gemini", "userPrompt": "q", "systemInstruction": "s", "jsonResponse": True},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["code"] == 0
    assert data["data"]["text"] == '{"answer": 42}'
    assert data["data"]["data"] == {"answer": 42}


def test_generate_upstream_failure_envelope(client):
    response = client.post("/v1/ai/generate", json={"provider": "deepseek", "userPrompt": "q"})
    assert response.status_code == 502
    data = response.json()
    assert data["code"] != 0
    assert "状态码: 502" in data["msg"]
    assert data["data"]["kind"] == "upstream_failure"


def test_generate_frontend_misconfigured(client):
    response = client.post(
        "/v1/ai/generate",
        json={"provider": "doubao", "userPrompt": "q", "executionMode": "frontend"},
    )
    assert response.status_code == 400
    assert response.json()["data"]["kind"] == "provider_misconfigured"
    assert client.recorder.requests == []


def test_generate_stream_emits_deltas(client):
    response = client.post("/v1/ai/generate/stream", json={"provider": "gemini", "userPrompt": "q"})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    events = _events(response.text)
    assert events[0] == {"type": "text_delta", "content": "你"}
    assert events[1] == {"type": "text_delta", "content": "好"}
    assert events[2] == {"type": "done"}
    assert events[-1] == "[DONE]"


def test_generate_stream_reports_error_event(client):
    response = client.post("/v1/ai/generate/stream", json={"provider": "openai", "userPrompt": "q"})
    events = _events(response.text)
    assert events[0]["type"] == "error"
    assert events[0]["kind"] == "upstream_failure"
    assert events[-1] == "[DONE]"


def test_audit_isolates_provider_failures(client):
    response = client.post(
        "/v1/ai/audit",
        json={"text": "一段有错子的文本", "providers": ["gemini", "deepseek"], "checklist": ["全文错别字"]},
    )
    assert response.status_code == 200
    results = response.json()["data"]["results"]
    assert list(results) == ["gemini", "deepseek"]
    assert results["gemini"]["issues"][0]["problematicText"] == "错子"
    assert results["deepseek"]["issues"] == []
    assert "状态码: 502" in results["deepseek"]["error"]


def test_roaming_without_relevant_content(client):
    response = client.post(
        "/v1/ai/roaming",
        json={"text": "笔记", "collectionName": "papers", "provider": "gemini"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["code"] == 0
    assert data["msg"] == NO_RELEVANT_CONTENT_MESSAGE
    assert data["data"] == {"status": "no_relevant_content", "items": []}


def test_list_providers(client):
    response = client.get("/v1/ai/providers")
    items = {item["provider"]: item for item in response.json()["data"]}
    assert set(items) == {"gemini", "openai", "deepseek", "ali", "depOCR", "doubao"}
    assert items["deepseek"]["supports_images"] is False
    assert items["gemini"]["wire"] == "gemini"
