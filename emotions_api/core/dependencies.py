from fastapi import Header, Query, Request
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError as PydanticValidationError

from emotions_api.core.config import settings
from emotions_api.core.exceptions import UnauthorizedError
from emotions_api.core.security import extract_api_key, verify_api_key
from emotions_api.gateway.gateway import CompletionGateway
from emotions_api.schemas.emotions import CompletionParams


def get_gateway(request: Request) -> CompletionGateway:
    """The process-wide gateway built at startup."""
    return request.app.state.gateway


def get_request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


async def require_api_key(
    x_api_key: str | None = Header(None, alias="X-API-Key"),
    authorization: str | None = Header(None),
) -> None:
    """Reject the request unless it carries the configured API key.

    No-op when REQUIRE_API_KEY is false.
    """
    if not settings.require_api_key:
        return

    candidate = extract_api_key(x_api_key, authorization)
    if candidate is None:
        raise UnauthorizedError("API key required. Provide it via X-API-Key header or Bearer token.")
    if not verify_api_key(candidate):
        raise UnauthorizedError("Invalid API key")


def completion_query(
    model: str | None = Query(None),
    max_tokens: str | None = Query(None, alias="maxTokens"),
    temperature: str | None = Query(None),
    context: str | None = Query(None),
    emotion: str | None = Query(None),
) -> CompletionParams:
    """Query-string version of ``CompletionParams`` for GET endpoints."""
    try:
        return CompletionParams(
            model=model,
            maxTokens=max_tokens,
            temperature=temperature,
            context=context,
            emotion=emotion,
        )
    except PydanticValidationError as e:
        raise RequestValidationError(
            [{**err, "loc": ("query", *err["loc"])} for err in e.errors(include_url=False, include_context=False)]
        ) from e
