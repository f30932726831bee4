import httpx

from common.ai.errors import (
    ErrorClassifier,
    ErrorKind,
    GatewayError,
    MalformedResponse,
    SecureOriginBlocked,
    TransportFailure,
    upstream_message,
)


def test_secure_origin_checked_first():
    classifier = ErrorClassifier("https://notes.example.com")
    error = classifier.classify(httpx.ConnectError("boom"), "http://10.0.0.2:5000/api")
    assert isinstance(error, SecureOriginBlocked)
    assert error.kind is ErrorKind.SECURE_ORIGIN_BLOCKED
    assert "http://10.0.0.2:5000/api" in error.message
    assert not error.retryable


def test_http_page_origin_is_not_a_violation():
    classifier = ErrorClassifier("http://localhost:3000")
    assert not classifier.is_secure_origin_violation("http://127.0.0.1:5000")
    assert not ErrorClassifier(None).is_secure_origin_violation("http://127.0.0.1:5000")


def test_transport_errors_become_transport_failure():
    classifier = ErrorClassifier()
    error = classifier.classify(httpx.ConnectTimeout("timed out"), "http://127.0.0.1:5000")
    assert isinstance(error, TransportFailure)
    assert "无法连接到后端服务 (http://127.0.0.1:5000)" in error.message
    assert error.retryable


def test_gateway_errors_pass_through():
    classifier = ErrorClassifier()
    original = MalformedResponse("坏数据", raw_response="{")
    assert classifier.classify(original, "http://x") is original
    assert classifier.wrap(original, "http://x").__cause__ is None


def test_generic_error_keeps_message_or_falls_back():
    classifier = ErrorClassifier()
    assert classifier.message_for(ValueError("oops"), "http://x") == "oops"
    fallback = classifier.wrap(ValueError(), "http://x")
    assert type(fallback) is GatewayError
    assert fallback.message == "后端请求出错 (http://x)"
    assert isinstance(fallback.__cause__, ValueError)


def test_upstream_message_mentions_upstream_for_5xx():
    assert "状态码: 502" in upstream_message(502, "http://x")
    assert "上游AI服务" in upstream_message(502, "http://x")
    assert "上游AI服务" not in upstream_message(404, "http://x")


def test_upstream_message_embeds_endpoint():
    assert "http://127.0.0.1:5000/api" in upstream_message(503, "http://127.0.0.1:5000/api")
