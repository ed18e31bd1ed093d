"""Tests for the HTTP surface: emotion endpoints, error mapping, monitoring."""

import pytest
from httpx import AsyncClient

from conftest import http_error, ok_response
from emotions_api.core.config import settings
from emotions_api.core.rate_limit import limiter
from emotions_api.prompts import NEGATIVE_AFFIRMATION_DISCLAIMER, SYSTEM_PROMPTS

# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_health_detailed(client: AsyncClient):
    resp = await client.get("/health/detailed")
    assert resp.status_code == 200
    data = resp.json()
    assert data["circuitBreaker"]["state"] == "closed"
    assert data["circuitBreaker"]["warning"] is None
    assert "config" in data  # development only


@pytest.mark.asyncio
async def test_ready(client: AsyncClient):
    resp = await client.get("/health/ready")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ready"


@pytest.mark.asyncio
async def test_not_ready_while_breaker_open(client: AsyncClient, gateway):
    for _ in range(5):
        gateway.breaker.record_failure()

    resp = await client.get("/health/ready")
    assert resp.status_code == 503
    assert resp.json()["status"] == "not_ready"
    assert any("Circuit breaker" in issue for issue in resp.json()["issues"])


# ---------------------------------------------------------------------------
# Affirmations
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_positive_affirmation(client: AsyncClient, transport):
    transport.outcomes = [ok_response(text="I am calm and capable.")]

    resp = await client.get("/api/v1/affirmations/positive", params={"emotion": "Anxious", "context": "job interview"})

    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    assert data["type"] == "positive"
    assert data["affirmation"] == "I am calm and capable."
    assert data["requestParams"] == {"emotion": "anxious", "context": "job interview"}
    assert data["metadata"]["tokens"] == {"input": 3, "output": 1, "total": 4}
    assert data["metadata"]["stopReason"] == "normal-stop"
    assert data["metadata"]["truncated"] is False

    sent = transport.calls[0]
    assert sent.system_prompt == SYSTEM_PROMPTS["positive_affirmation"].strip()
    assert "feeling anxious" in sent.prompt
    assert "job interview" in sent.prompt
    assert sent.temperature == 0.7


@pytest.mark.asyncio
async def test_positive_affirmation_post(client: AsyncClient, transport):
    resp = await client.post("/api/v1/affirmations/positive", json={"context": "first day at work"})
    assert resp.status_code == 200
    assert "first day at work" in transport.calls[0].prompt


@pytest.mark.asyncio
async def test_negative_affirmation_defaults_to_high_temperature(client: AsyncClient, transport):
    resp = await client.get("/api/v1/affirmations/negative")

    assert resp.status_code == 200
    data = resp.json()
    assert data["type"] == "negative"
    assert data["disclaimer"] == NEGATIVE_AFFIRMATION_DISCLAIMER
    assert transport.calls[0].temperature == 0.9


@pytest.mark.asyncio
async def test_explicit_zero_temperature_is_honored(client: AsyncClient, transport):
    resp = await client.post("/api/v1/affirmations/negative", json={"temperature": 0})
    assert resp.status_code == 200
    assert transport.calls[0].temperature == 0.0


@pytest.mark.asyncio
async def test_context_too_long(client: AsyncClient, transport):
    resp = await client.get("/api/v1/affirmations/positive", params={"context": "x" * 501})

    assert resp.status_code == 400
    data = resp.json()
    assert data["error"] == "Validation failed"
    assert data["details"][0]["field"] == "context"
    assert transport.call_count == 0


# ---------------------------------------------------------------------------
# Emotions
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_support_requires_emotion(client: AsyncClient, transport):
    resp = await client.get("/api/v1/emotions/support")

    assert resp.status_code == 400
    detail = resp.json()["detail"]
    assert detail["message"] == "emotion parameter is required"
    assert "anxious" in detail["validEmotions"]
    assert transport.call_count == 0


@pytest.mark.asyncio
async def test_support_rejects_unknown_emotion(client: AsyncClient, transport):
    resp = await client.get("/api/v1/emotions/support", params={"emotion": "furious"})

    assert resp.status_code == 400
    data = resp.json()
    assert data["success"] is False
    assert data["error"] == "Validation failed"
    assert data["details"][0]["field"] == "emotion"
    assert data["details"][0]["message"].startswith("emotion must be one of")
    assert transport.call_count == 0


@pytest.mark.asyncio
async def test_support(client: AsyncClient, transport):
    resp = await client.post("/api/v1/emotions/support", json={"emotion": "sad", "context": "rainy week"})

    assert resp.status_code == 200
    assert resp.json()["emotion"] == "sad"
    sent = transport.calls[0]
    assert sent.max_tokens == 500
    assert sent.prompt == "Provide supportive content for someone feeling sad. Additional context: rainy week"


@pytest.mark.asyncio
async def test_support_post_requires_emotion(client: AsyncClient):
    resp = await client.post("/api/v1/emotions/support", json={})
    assert resp.status_code == 400
    assert resp.json()["detail"]["message"] == "emotion field in request body is required"


@pytest.mark.asyncio
async def test_motivational_quote(client: AsyncClient, transport):
    resp = await client.get("/api/v1/emotions/motivational-quote", params={"context": "perseverance"})

    assert resp.status_code == 200
    assert resp.json()["context"] == "perseverance"
    assert transport.calls[0].max_tokens == 200
    assert transport.calls[0].temperature == 0.8


@pytest.mark.asyncio
async def test_wellness_tip_focus_defaults_to_general(client: AsyncClient, transport):
    resp = await client.get("/api/v1/emotions/wellness-tip")

    assert resp.status_code == 200
    assert resp.json()["focus"] == "general"
    assert transport.calls[0].max_tokens == 300


@pytest.mark.asyncio
async def test_analyze_parses_json(client: AsyncClient, transport):
    transport.outcomes = [
        ok_response(text='Here you go: {"primaryEmotion": "joy", "intensity": "high"} Hope that helps.')
    ]

    resp = await client.post("/api/v1/emotions/analyze", json={"prompt": "I got the job!"})

    assert resp.status_code == 200
    data = resp.json()
    assert data["analysis"] == {"primaryEmotion": "joy", "intensity": "high"}
    assert data["originalText"] == "I got the job!"
    assert transport.calls[0].temperature == 0.3


@pytest.mark.asyncio
async def test_analyze_falls_back_to_raw_text(client: AsyncClient, transport):
    transport.outcomes = [ok_response(text="The writer sounds happy.")]

    resp = await client.post("/api/v1/emotions/analyze", json={"prompt": "y" * 150})

    data = resp.json()
    assert data["analysis"]["rawResponse"] == "The writer sounds happy."
    assert data["analysis"]["parseError"] == "Could not parse structured response"
    assert data["originalText"] == "y" * 100 + "..."


@pytest.mark.asyncio
async def test_analyze_requires_prompt(client: AsyncClient, transport):
    resp = await client.post("/api/v1/emotions/analyze", json={"prompt": "   "})
    assert resp.status_code == 400
    assert resp.json()["details"][0]["field"] == "prompt"
    assert transport.call_count == 0


@pytest.mark.asyncio
async def test_custom_clamps_max_tokens(client: AsyncClient, transport):
    transport.outcomes = [ok_response(text="Sure.", stop_reason="max_tokens")]

    resp = await client.post("/api/v1/emotions/custom", json={"prompt": "Tell me a story", "maxTokens": 10000})

    assert resp.status_code == 200
    assert resp.json()["response"] == "Sure."
    assert resp.json()["metadata"]["truncated"] is True
    assert transport.calls[0].max_tokens == 4096


@pytest.mark.asyncio
async def test_custom_rejects_bad_temperature(client: AsyncClient, transport):
    resp = await client.post("/api/v1/emotions/custom", json={"prompt": "hi", "temperature": 2})

    assert resp.status_code == 400
    error = resp.json()["error"]
    assert error["kind"] == "validation_error"
    assert error["details"]["field"] == "temperature"
    assert transport.call_count == 0


@pytest.mark.asyncio
async def test_rejects_unknown_model(client: AsyncClient, transport):
    resp = await client.get("/api/v1/emotions/wellness-tip", params={"model": "gpt-4o"})

    assert resp.status_code == 400
    assert resp.json()["error"]["details"]["field"] == "model"
    assert transport.call_count == 0


# ---------------------------------------------------------------------------
# Gateway errors over HTTP
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_breaker_open_returns_503_with_retry_after(client: AsyncClient, gateway, transport):
    for _ in range(5):
        gateway.breaker.record_failure()

    resp = await client.get("/api/v1/affirmations/positive")

    assert resp.status_code == 503
    assert resp.headers["Retry-After"] == "30"
    error = resp.json()["error"]
    assert error["kind"] == "circuit_open"
    assert error["statusCode"] == 503
    assert transport.call_count == 0


@pytest.mark.asyncio
async def test_permanent_upstream_error(client: AsyncClient, transport):
    transport.outcomes = [http_error(401)]

    resp = await client.get("/api/v1/affirmations/positive")

    assert resp.status_code == 502
    assert resp.json()["error"]["kind"] == "upstream_error"


@pytest.mark.asyncio
async def test_upstream_rate_limit_after_retries(client: AsyncClient, transport, sleeps):
    transport.outcomes = [http_error(429)] * 4

    resp = await client.get("/api/v1/affirmations/positive")

    assert resp.status_code == 429
    assert resp.json()["error"]["details"]["retries"] == 3
    assert len(sleeps.delays) == 3


# ---------------------------------------------------------------------------
# Request ids and auth
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_request_id_propagates(client: AsyncClient, transport):
    resp = await client.get("/api/v1/affirmations/positive", headers={"X-Request-ID": "trace-123"})

    assert resp.headers["X-Request-ID"] == "trace-123"
    assert resp.json()["metadata"]["requestId"] == "trace-123"
    assert transport.calls[0].request_id == "trace-123"


@pytest.mark.asyncio
async def test_request_id_generated(client: AsyncClient):
    resp = await client.get("/health")
    assert resp.headers["X-Request-ID"].startswith("req_")


@pytest.mark.asyncio
async def test_api_key_required(client: AsyncClient, monkeypatch):
    monkeypatch.setattr(settings, "require_api_key", True)
    monkeypatch.setattr(settings, "api_key", "s3cret")

    resp = await client.get("/api/v1/affirmations/positive")
    assert resp.status_code == 401

    resp = await client.get("/api/v1/affirmations/positive", headers={"X-API-Key": "wrong"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid API key"

    resp = await client.get("/api/v1/affirmations/positive", headers={"X-API-Key": "s3cret"})
    assert resp.status_code == 200

    resp = await client.get("/api/v1/stats", headers={"Authorization": "Bearer s3cret"})
    assert resp.status_code == 200

    # Public endpoints stay open
    resp = await client.get("/api/v1/models")
    assert resp.status_code == 200


# ---------------------------------------------------------------------------
# Monitoring
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_stats(client: AsyncClient, transport):
    transport.outcomes = [ok_response(input_tokens=10, output_tokens=5)]
    await client.get("/api/v1/affirmations/positive")

    resp = await client.get("/api/v1/stats")

    assert resp.status_code == 200
    stats = resp.json()["stats"]
    assert stats["tokens"]["input_tokens"] == 10
    assert stats["tokens"]["output_tokens"] == 5
    assert stats["tokens"]["request_count"] == 1
    assert stats["circuitBreaker"] == {"state": "closed", "consecutiveFailures": 0, "lastFailure": None}
    assert stats["limits"]["hardMaxTokens"] == 4096


@pytest.mark.asyncio
async def test_stats_reset(client: AsyncClient, gateway, transport):
    await client.get("/api/v1/affirmations/positive")
    for _ in range(5):
        gateway.breaker.record_failure()

    resp = await client.post("/api/v1/stats/reset")

    assert resp.status_code == 200
    assert resp.json()["results"] == {"tokensReset": True, "circuitBreakerReset": True}
    assert gateway.get_usage_stats().request_count == 0
    assert gateway.get_breaker_state().state.value == "closed"


@pytest.mark.asyncio
async def test_stats_reset_selective(client: AsyncClient, gateway):
    for _ in range(5):
        gateway.breaker.record_failure()

    resp = await client.post("/api/v1/stats/reset", json={"resetCircuit": False})

    assert resp.json()["results"] == {"tokensReset": True, "circuitBreakerReset": False}
    assert gateway.breaker.is_open


@pytest.mark.asyncio
async def test_stats_reset_forbidden_in_production(client: AsyncClient, monkeypatch):
    monkeypatch.setattr(settings, "app_env", "production")

    resp = await client.post("/api/v1/stats/reset")
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_models(client: AsyncClient):
    resp = await client.get("/api/v1/models")

    assert resp.status_code == 200
    data = resp.json()
    assert data["defaultModel"] == "claude-sonnet-4-20250514"
    default = [m for m in data["models"] if m["default"]]
    assert len(default) == 1
    assert default[0]["pricing"] == {"input": 3.0, "output": 15.0}


@pytest.mark.asyncio
async def test_info(client: AsyncClient):
    resp = await client.get("/api/v1/info")
    assert resp.status_code == 200
    data = resp.json()
    assert "/api/v1/emotions/support" in data["endpoints"]
    assert data["configuration"]["anthropic"]["api_key_configured"] is True


@pytest.mark.asyncio
async def test_metrics(client: AsyncClient):
    await client.get("/api/v1/affirmations/positive")

    resp = await client.get("/metrics")

    assert resp.status_code == 200
    assert "gateway_completions_total" in resp.text
    assert "http_requests_total" in resp.text


@pytest.mark.asyncio
async def test_security_headers(client: AsyncClient):
    resp = await client.get("/health")
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers["X-Frame-Options"] == "DENY"
    assert "Strict-Transport-Security" not in resp.headers


# ---------------------------------------------------------------------------
# Request hygiene: general rate limit, sanitization, body size
# ---------------------------------------------------------------------------


@pytest.fixture
def live_limiter(monkeypatch):
    monkeypatch.setattr(limiter, "enabled", True)
    limiter.reset()
    yield limiter
    limiter.reset()


@pytest.mark.asyncio
async def test_general_rate_limit_covers_every_route(client: AsyncClient, live_limiter):
    for _ in range(settings.rate_limit_max):
        resp = await client.get("/health")
        assert resp.status_code == 200

    resp = await client.get("/health")
    assert resp.status_code == 429

    resp = await client.get("/api/v1/info")
    assert resp.status_code == 429


@pytest.mark.asyncio
async def test_null_bytes_stripped_from_query(client: AsyncClient, transport):
    resp = await client.get(
        "/api/v1/affirmations/positive",
        params={"emotion": "anxious\x00", "context": " job\x00 interview "},
    )

    assert resp.status_code == 200
    assert resp.json()["requestParams"] == {"emotion": "anxious", "context": "job interview"}
    assert "\x00" not in transport.calls[0].prompt


@pytest.mark.asyncio
async def test_null_bytes_stripped_from_body(client: AsyncClient, transport):
    resp = await client.post("/api/v1/emotions/custom", json={"prompt": "\x00 Tell me a joke\x00 ", "model": " \x00"})

    assert resp.status_code == 200
    sent = transport.calls[0]
    assert sent.prompt == "Tell me a joke"
    assert sent.model == settings.default_model


@pytest.mark.asyncio
async def test_prompt_of_only_null_bytes_is_rejected(client: AsyncClient, transport):
    resp = await client.post("/api/v1/emotions/analyze", json={"prompt": "\x00\x00 "})

    assert resp.status_code == 400
    assert resp.json()["details"][0]["message"] == "prompt is required"
    assert transport.call_count == 0


@pytest.mark.asyncio
async def test_oversized_body_rejected(client: AsyncClient, transport):
    resp = await client.post("/api/v1/emotions/custom", json={"prompt": "x" * (settings.max_body_size + 1)})

    assert resp.status_code == 413
    assert resp.json() == {"success": False, "error": "Request body too large"}
    assert transport.call_count == 0


@pytest.mark.asyncio
async def test_body_under_limit_accepted(client: AsyncClient, transport):
    resp = await client.post("/api/v1/emotions/custom", json={"prompt": "x" * 5000})

    assert resp.status_code == 200
    assert transport.call_count == 1
