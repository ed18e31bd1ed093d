"""Monitoring endpoints: usage stats, administrative reset, models, API info."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from emotions_api.core.config import get_safe_config, settings
from emotions_api.core.dependencies import get_gateway, require_api_key
from emotions_api.core.exceptions import ForbiddenError
from emotions_api.gateway.gateway import CompletionGateway
from emotions_api.gateway.types import MODEL_PRICING
from emotions_api.prompts import VALID_EMOTIONS
from emotions_api.schemas.emotions import MAX_CONTEXT_LENGTH, MAX_PROMPT_BODY_LENGTH, StatsResetRequest

router = APIRouter(tags=["monitoring"])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/stats", dependencies=[Depends(require_api_key)])
async def get_stats(gateway: CompletionGateway = Depends(get_gateway)):
    """Token usage in the current window, breaker state and cost limits."""
    breaker = gateway.get_breaker_state()
    return {
        "success": True,
        "stats": {
            "tokens": gateway.get_usage_stats().to_dict(),
            "circuitBreaker": {
                "state": breaker.state.value,
                "consecutiveFailures": breaker.failures,
                "lastFailure": breaker.last_failure_time.isoformat() if breaker.last_failure_time else None,
            },
            "limits": {
                "hardMaxTokens": gateway.config.hard_max_tokens,
                "maxPromptLength": gateway.config.max_prompt_length,
                "rateLimitPerWindow": settings.claude_api_rate_limit_max,
            },
        },
        "timestamp": _now(),
    }


@router.post("/stats/reset", dependencies=[Depends(require_api_key)])
async def reset_stats(
    body: StatsResetRequest | None = None,
    gateway: CompletionGateway = Depends(get_gateway),
):
    """Reset usage counters and/or the circuit breaker. Disabled in production."""
    if settings.is_production:
        raise ForbiddenError("Stats reset is disabled in production")

    body = body or StatsResetRequest()
    results = {"tokensReset": False, "circuitBreakerReset": False}

    if body.reset_tokens:
        gateway.reset_usage_stats()
        results["tokensReset"] = True
    if body.reset_circuit:
        gateway.reset_breaker()
        results["circuitBreakerReset"] = True

    return {
        "success": True,
        "message": "Stats reset successfully",
        "results": results,
        "timestamp": _now(),
    }


@router.get("/models")
async def list_models(gateway: CompletionGateway = Depends(get_gateway)):
    """Allow-listed models with their pricing (USD per 1M tokens)."""
    return {
        "success": True,
        "defaultModel": gateway.config.default_model,
        "models": [
            {
                "id": model,
                "default": model == gateway.config.default_model,
                "pricing": MODEL_PRICING.get(model),
            }
            for model in gateway.config.valid_models
        ],
    }


_OPTIONAL_PARAMS = {
    "model": "Optional. Model to use (see /api/v1/models)",
    "maxTokens": "Optional. Maximum response length",
    "temperature": "Optional. Creativity level (0-1)",
}


@router.get("/info")
async def api_info():
    emotions = ", ".join(VALID_EMOTIONS)
    context = f"Optional. Additional context (max {MAX_CONTEXT_LENGTH} chars)"
    prompt = f"Required. Text (max {MAX_PROMPT_BODY_LENGTH} chars)"
    return {
        "name": "Claude Emotions API",
        "version": "1.0.0",
        "description": "A REST API for emotion-based AI interactions powered by Claude",
        "features": {
            "retryLogic": "Automatic retry with exponential backoff for transient failures",
            "circuitBreaker": "Prevents cascade failures when the model API is unavailable",
            "tokenTracking": "Monitors token usage for cost control",
            "rateLimiting": "Protects against abuse and controls costs",
            "inputValidation": "Comprehensive validation of all inputs",
        },
        "endpoints": {
            "/api/v1/affirmations/positive": {
                "methods": ["GET", "POST"],
                "parameters": {"emotion": f"Optional. One of: {emotions}", "context": context, **_OPTIONAL_PARAMS},
            },
            "/api/v1/affirmations/negative": {
                "methods": ["GET", "POST"],
                "parameters": {"context": context, **_OPTIONAL_PARAMS},
            },
            "/api/v1/emotions/support": {
                "methods": ["GET", "POST"],
                "parameters": {"emotion": f"Required. One of: {emotions}", "context": context, **_OPTIONAL_PARAMS},
            },
            "/api/v1/emotions/motivational-quote": {
                "methods": ["GET"],
                "parameters": {"emotion": "Optional", "context": "Optional. Theme", **_OPTIONAL_PARAMS},
            },
            "/api/v1/emotions/wellness-tip": {
                "methods": ["GET"],
                "parameters": {"emotion": "Optional", "context": "Optional. Focus area", **_OPTIONAL_PARAMS},
            },
            "/api/v1/emotions/analyze": {"methods": ["POST"], "body": {"prompt": prompt, **_OPTIONAL_PARAMS}},
            "/api/v1/emotions/custom": {"methods": ["POST"], "body": {"prompt": prompt, **_OPTIONAL_PARAMS}},
        },
        "configuration": get_safe_config() if settings.is_development else None,
    }
