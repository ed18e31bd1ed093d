import logging
import platform
import time
import traceback
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from emotions_api.api.v1.router import api_v1_router
from emotions_api.core.config import get_safe_config, settings, validate_settings
from emotions_api.core.dependencies import get_gateway
from emotions_api.core.logging import setup_logging
from emotions_api.core.metrics import PrometheusMiddleware, metrics_response
from emotions_api.core.middleware import (
    BodySizeLimitMiddleware,
    RequestIDMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from emotions_api.core.rate_limit import limiter
from emotions_api.core.sentry import init_sentry
from emotions_api.gateway.errors import CircuitOpenError, GatewayError
from emotions_api.gateway.gateway import CompletionGateway, build_gateway
from emotions_api.gateway.types import CircuitState

# Configure logging before anything else
setup_logging()
init_sentry()

logger = logging.getLogger(__name__)

_started_at = time.monotonic()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    validate_settings()
    logger.info(
        "Starting Claude Emotions API (env=%s, model=%s, hard_max_tokens=%d)",
        settings.app_env,
        settings.default_model,
        settings.hard_max_tokens,
    )

    yield

    # Shutdown
    await app.state.gateway.drain()
    logger.info("Claude Emotions API shut down")


app = FastAPI(
    title="Claude Emotions API",
    description="Emotion-themed REST endpoints over the Anthropic Messages API",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/api/docs" if settings.app_debug else None,
    redoc_url="/api/redoc" if settings.app_debug else None,
)

app.state.gateway = build_gateway(settings)


@app.exception_handler(GatewayError)
async def _gateway_error_handler(request: Request, exc: GatewayError):
    headers = {}
    if isinstance(exc, CircuitOpenError):
        headers["Retry-After"] = str(exc.details["retry_after"])
    return JSONResponse(
        status_code=exc.http_status,
        content={"success": False, "error": exc.to_dict()},
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def _request_validation_handler(request: Request, exc: RequestValidationError):
    details = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query")]
        message = str(err.get("msg", "Invalid value")).removeprefix("Value error, ")
        details.append({"field": ".".join(loc) or None, "message": message})
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "Validation failed", "details": details},
    )


# Log unhandled exceptions with the full traceback
@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception):
    tb = traceback.format_exception(type(exc), exc, exc.__traceback__)
    logger.error("Unhandled %s on %s %s:\n%s", type(exc).__name__, request.method, request.url.path, "".join(tb))
    message = "Internal server error" if settings.is_production else f"{type(exc).__name__}: {exc}"
    return JSONResponse(status_code=500, content={"success": False, "error": message})


# Rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Middleware (last added runs first)
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(BodySizeLimitMiddleware, max_bytes=settings.max_body_size)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(PrometheusMiddleware)
app.add_middleware(SecurityHeadersMiddleware, hsts=settings.is_production)
app.add_middleware(RequestIDMiddleware)

# CORS: parse allowed_origins from settings (comma-separated)
_origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials="*" not in _origins,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-API-Key", "X-Request-ID"],
    expose_headers=["X-Request-ID", "Retry-After"],
)

# API routes
app.include_router(api_v1_router)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@app.get("/")
async def root():
    return {
        "name": "Claude Emotions API",
        "version": "1.0.0",
        "docs": "/api/docs" if settings.app_debug else None,
        "info": "/api/v1/info",
        "health": "/health",
    }


@app.get("/health")
async def health():
    return {"status": "healthy", "timestamp": _now()}


@app.get("/health/detailed")
async def health_detailed(gateway: CompletionGateway = Depends(get_gateway)):
    breaker = gateway.get_breaker_state()
    uptime = int(time.monotonic() - _started_at)
    info = {
        "status": "healthy",
        "timestamp": _now(),
        "uptime": {"seconds": uptime, "formatted": _format_uptime(uptime)},
        "environment": settings.app_env,
        "python": {"version": platform.python_version(), "platform": platform.system().lower()},
        "circuitBreaker": {
            "state": breaker.state.value,
            "failures": breaker.failures,
            "warning": (
                "Circuit breaker is not in normal state. The model API may be experiencing issues."
                if breaker.state != CircuitState.CLOSED
                else None
            ),
        },
    }
    if settings.is_development:
        info["config"] = get_safe_config()
    return info


@app.get("/health/ready")
async def health_ready(gateway: CompletionGateway = Depends(get_gateway)):
    """Readiness check: 503 while the breaker is open or no API key is set."""
    issues = []
    if gateway.breaker.is_open:
        issues.append("Circuit breaker is OPEN - the model API may be unavailable")
    if not gateway.transport.is_configured:
        issues.append("Anthropic API key is not configured")

    if issues:
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "timestamp": _now(), "issues": issues},
        )
    return {"status": "ready", "timestamp": _now()}


@app.get("/metrics", include_in_schema=False)
async def metrics():
    return metrics_response()


def _format_uptime(seconds: int) -> str:
    days, rem = divmod(seconds, 86400)
    hours, rem = divmod(rem, 3600)
    minutes, secs = divmod(rem, 60)
    parts = [f"{days}d"] if days else []
    if days or hours:
        parts.append(f"{hours}h")
    if days or hours or minutes:
        parts.append(f"{minutes}m")
    parts.append(f"{secs}s")
    return " ".join(parts)
