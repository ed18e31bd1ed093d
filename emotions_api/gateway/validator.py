"""Request Validator: turns raw caller input into a CompletionRequest.

Checks run in a fixed order (prompt, system prompt, model, max tokens,
temperature) and the first violation wins. Nothing here touches the network
or shared state.

Cost limits:
  - prompt / system prompt lengths are capped in characters
  - max_tokens above the hard ceiling is clamped silently
  - temperature outside [0, 1] is rejected
"""

from __future__ import annotations

import math
import random
import string
import time
from typing import Any

from emotions_api.gateway.errors import ValidationError
from emotions_api.gateway.types import CompletionRequest, GatewayConfig

_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_request_id() -> str:
    """Opaque correlation id, e.g. ``req_1718000000000_k3j9x0a2b``."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"req_{int(time.time() * 1000)}_{suffix}"


def validate_request(
    config: GatewayConfig,
    *,
    prompt: Any,
    system_prompt: Any = None,
    model: Any = None,
    max_tokens: Any = None,
    temperature: Any = None,
    request_id: str | None = None,
) -> CompletionRequest:
    """Validate raw fields and build a CompletionRequest.

    Raises:
        ValidationError: naming the offending field.
    """
    clean_prompt = _validate_prompt(prompt, config.max_prompt_length)
    clean_system = _validate_system_prompt(system_prompt, config.max_system_prompt_length)
    clean_model = _validate_model(model, config)
    effective_max_tokens = _validate_max_tokens(max_tokens, config)
    clean_temperature = _validate_temperature(temperature, config.default_temperature)

    return CompletionRequest(
        prompt=clean_prompt,
        system_prompt=clean_system,
        model=clean_model,
        max_tokens=effective_max_tokens,
        temperature=clean_temperature,
        request_id=request_id or generate_request_id(),
    )


def _validate_prompt(prompt: Any, max_length: int) -> str:
    if not isinstance(prompt, str) or not prompt.strip():
        raise ValidationError("prompt", "prompt is required and must be a non-empty string")
    if len(prompt) > max_length:
        raise ValidationError(
            "prompt",
            f"prompt exceeds maximum length of {max_length} characters",
            details={"max_length": max_length},
        )
    return prompt.strip()


def _validate_system_prompt(system_prompt: Any, max_length: int) -> str | None:
    if system_prompt is None:
        return None
    if not isinstance(system_prompt, str):
        raise ValidationError("system_prompt", "system_prompt must be a string")
    if len(system_prompt) > max_length:
        raise ValidationError(
            "system_prompt",
            f"system_prompt exceeds maximum length of {max_length} characters",
            details={"max_length": max_length},
        )
    return system_prompt.strip() or None


def _validate_model(model: Any, config: GatewayConfig) -> str:
    if model is None or model == "":
        return config.default_model
    if not isinstance(model, str) or model not in config.valid_models:
        raise ValidationError(
            "model",
            f'Invalid model: "{model}". Valid models are: {", ".join(config.valid_models)}',
            details={"valid_models": list(config.valid_models)},
        )
    return model


def _validate_max_tokens(max_tokens: Any, config: GatewayConfig) -> int:
    if max_tokens is None or max_tokens == "":
        return min(config.default_max_tokens, config.hard_max_tokens)

    parsed: int | None = None
    if isinstance(max_tokens, bool):
        parsed = None
    elif isinstance(max_tokens, int):
        parsed = max_tokens
    elif isinstance(max_tokens, float) and max_tokens.is_integer():
        parsed = int(max_tokens)
    elif isinstance(max_tokens, str):
        try:
            parsed = int(max_tokens.strip())
        except ValueError:
            parsed = None

    if parsed is None or parsed < 1:
        raise ValidationError("max_tokens", "max_tokens must be a positive integer")

    return min(parsed, config.hard_max_tokens)


def _validate_temperature(temperature: Any, default: float) -> float:
    if temperature is None or temperature == "":
        return default

    parsed: float | None = None
    if isinstance(temperature, bool):
        parsed = None
    elif isinstance(temperature, (int, float)):
        parsed = float(temperature)
    elif isinstance(temperature, str):
        try:
            parsed = float(temperature.strip())
        except ValueError:
            parsed = None

    if parsed is None or not math.isfinite(parsed) or not 0.0 <= parsed <= 1.0:
        raise ValidationError("temperature", "temperature must be a number between 0 and 1")

    return parsed
