import logging

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

_SIZE_UNITS = {"b": 1, "kb": 1024, "mb": 1024 * 1024}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Anthropic
    anthropic_api_key: str = ""
    anthropic_api_url: str = "https://api.anthropic.com/v1/messages"
    anthropic_version: str = "2023-06-01"

    # Model defaults and cost protection
    default_model: str = "claude-sonnet-4-20250514"
    default_max_tokens: int = 1024
    hard_max_tokens: int = 4096  # requested max_tokens above this are clamped
    default_temperature: float = 0.7
    max_prompt_length: int = 50_000  # characters
    max_system_prompt_length: int = 10_000  # characters
    valid_models: list[str] = [
        "claude-opus-4-5-20251101",
        "claude-sonnet-4-20250514",
        "claude-3-5-haiku-20241022",
        "claude-3-5-sonnet-20241022",
        "claude-3-opus-20240229",
        "claude-3-sonnet-20240229",
        "claude-3-haiku-20240307",
    ]

    # Retry
    api_max_retries: int = 3
    api_retry_base_delay_ms: int = 1000
    api_retry_max_delay_ms: int = 10_000
    api_retry_backoff_multiplier: float = 2.0
    api_retry_jitter_factor: float = 0.1

    # Circuit breaker
    circuit_breaker_threshold: int = 5
    circuit_breaker_reset_ms: int = 30_000

    # Usage tracking
    usage_window_minutes: int = 60

    # Timeouts
    request_timeout_ms: int = 60_000  # whole logical request, retries included
    upstream_timeout_ms: int = 60_000  # single HTTP exchange with Anthropic

    # App
    app_env: str = "development"
    app_debug: bool = True
    app_host: str = "0.0.0.0"
    app_port: int = 8000

    # CORS
    allowed_origins: str = "*"  # comma-separated, e.g. "https://app.example.com,https://admin.example.com"

    # Endpoint protection
    api_key: str = ""
    require_api_key: bool = False

    # Rate limiting (per client IP)
    rate_limit_enabled: bool = True
    rate_limit_max: int = 100  # every route
    rate_limit_window_minutes: int = 15
    claude_api_rate_limit_max: int = 30
    claude_api_rate_limit_window_minutes: int = 15

    # Request bodies above this many bytes get 413; accepts "10kb" style values
    max_body_size: int = 10 * 1024

    # Logging
    log_level: str = "INFO"
    log_json: bool = False  # set True in production for structured JSON logs

    # Sentry
    sentry_dsn: str = ""  # leave empty to disable

    @field_validator("max_body_size", mode="before")
    @classmethod
    def _parse_size(cls, v):
        if isinstance(v, str):
            text = v.strip().lower()
            for unit in ("kb", "mb", "b"):
                if text.endswith(unit) and text[: -len(unit)].strip().isdigit():
                    return int(text[: -len(unit)]) * _SIZE_UNITS[unit]
        return v

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def general_rate_limit(self) -> str:
        return f"{self.rate_limit_max}/{self.rate_limit_window_minutes} minutes"

    @property
    def claude_api_rate_limit(self) -> str:
        """slowapi limit string, e.g. "30/15 minutes"."""
        return f"{self.claude_api_rate_limit_max}/{self.claude_api_rate_limit_window_minutes} minutes"


settings = Settings()


def is_valid_model(model: str) -> bool:
    return model in settings.valid_models


def validate_settings() -> list[str]:
    """Validate critical settings. Called on startup in non-test environments.

    Returns the list of warnings that were logged. Raises SystemExit if any
    setting is unusable.
    """
    errors: list[str] = []
    warnings: list[str] = []

    if not settings.anthropic_api_key:
        errors.append("ANTHROPIC_API_KEY is required but not set")

    if not 1 <= settings.default_max_tokens <= 8192:
        errors.append("DEFAULT_MAX_TOKENS must be between 1 and 8192")

    if not 1 <= settings.hard_max_tokens <= 8192:
        errors.append("HARD_MAX_TOKENS must be between 1 and 8192")

    if settings.max_prompt_length < 100:
        errors.append("MAX_PROMPT_LENGTH must be at least 100 characters")

    if not is_valid_model(settings.default_model):
        errors.append(f"DEFAULT_MODEL '{settings.default_model}' is not in VALID_MODELS")

    if settings.hard_max_tokens < settings.default_max_tokens:
        warnings.append("HARD_MAX_TOKENS is less than DEFAULT_MAX_TOKENS; using HARD_MAX_TOKENS as default")
        settings.default_max_tokens = settings.hard_max_tokens

    if settings.is_production:
        if settings.allowed_origins == "*":
            warnings.append("ALLOWED_ORIGINS is '*' in production; consider restricting to specific domains")
        if not settings.require_api_key:
            warnings.append("API key authentication is disabled in production; consider REQUIRE_API_KEY=true")
        if settings.app_debug:
            warnings.append("APP_DEBUG is enabled in production")

    if settings.require_api_key and not settings.api_key:
        errors.append("REQUIRE_API_KEY is true but API_KEY is not set")

    for warning in warnings:
        logger.warning("Configuration warning: %s", warning)

    if errors:
        raise SystemExit("Configuration errors:\n  - " + "\n  - ".join(errors))

    return warnings


def get_safe_config() -> dict:
    """Settings that are safe to expose (no secrets)."""
    return {
        "anthropic": {
            "default_model": settings.default_model,
            "default_max_tokens": settings.default_max_tokens,
            "hard_max_tokens": settings.hard_max_tokens,
            "max_prompt_length": settings.max_prompt_length,
            "valid_models": list(settings.valid_models),
            "api_key_configured": bool(settings.anthropic_api_key),
        },
        "server": {
            "port": settings.app_port,
            "env": settings.app_env,
            "request_timeout_ms": settings.request_timeout_ms,
            "max_body_size": settings.max_body_size,
        },
        "rate_limit": {
            "enabled": settings.rate_limit_enabled,
            "general_limit": settings.general_rate_limit,
            "claude_api_limit": settings.claude_api_rate_limit,
        },
        "security": {
            "require_api_key": settings.require_api_key,
            "api_key_configured": bool(settings.api_key),
        },
    }
