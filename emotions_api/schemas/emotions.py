"""Pydantic request/response models for the emotion endpoints.

``model``, ``maxTokens`` and ``temperature`` are deliberately loose here:
their range checks and defaults belong to the completion gateway, which
reports violations as ``validation_error``.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from emotions_api.gateway.types import CompletionResult
from emotions_api.prompts import VALID_EMOTIONS

MAX_CONTEXT_LENGTH = 500
MAX_PROMPT_BODY_LENGTH = 10_000


def sanitize_input(value: Any) -> Any:
    """Strip NUL bytes and surrounding whitespace from every string, recursively."""
    if isinstance(value, str):
        return value.replace("\x00", "").strip()
    if isinstance(value, dict):
        return {key: sanitize_input(item) for key, item in value.items()}
    if isinstance(value, list):
        return [sanitize_input(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class GenerationOptions(BaseModel):
    """Model parameters accepted by every completion endpoint."""

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    model: Any = None
    max_tokens: Any = Field(None, alias="maxTokens")
    temperature: Any = None

    @model_validator(mode="before")
    @classmethod
    def _sanitize(cls, data: Any) -> Any:
        return sanitize_input(data)


class CompletionParams(GenerationOptions):
    """Optional personalization for affirmation and wellness endpoints."""

    context: str | None = Field(None, max_length=MAX_CONTEXT_LENGTH)
    emotion: str | None = None

    @field_validator("context")
    @classmethod
    def _strip_context(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None

    @field_validator("emotion")
    @classmethod
    def _normalize_emotion(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip().lower()
        if not v:
            return None
        if v not in VALID_EMOTIONS:
            raise ValueError(f"emotion must be one of: {', '.join(VALID_EMOTIONS)}")
        return v


class PromptBody(GenerationOptions):
    """Body of endpoints that take free text from the client."""

    prompt: str = Field(..., max_length=MAX_PROMPT_BODY_LENGTH)

    @field_validator("prompt")
    @classmethod
    def _require_prompt(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("prompt is required")
        return v


class StatsResetRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    reset_tokens: bool = Field(True, alias="resetTokens")
    reset_circuit: bool = Field(True, alias="resetCircuit")


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class TokenCounts(BaseModel):
    input: int
    output: int
    total: int


class CompletionMetadata(BaseModel):
    """Usage metadata attached to every successful completion."""

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    model: str
    tokens: TokenCounts
    stop_reason: str = Field(serialization_alias="stopReason")
    truncated: bool
    request_id: str = Field(serialization_alias="requestId")

    @classmethod
    def from_result(cls, result: CompletionResult) -> CompletionMetadata:
        return cls(
            model=result.model,
            tokens=TokenCounts(
                input=result.input_tokens,
                output=result.output_tokens,
                total=result.total_tokens,
            ),
            stop_reason=result.stop_reason.value,
            truncated=result.truncated,
            request_id=result.request_id,
        )
