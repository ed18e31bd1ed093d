"""Affirmation endpoints: positive and humorous negative affirmations.

GET takes parameters from the query string, POST from a JSON body; both
produce the same response shape.
"""

from fastapi import APIRouter, Depends, Request

from emotions_api.core.dependencies import completion_query, get_gateway, get_request_id, require_api_key
from emotions_api.core.rate_limit import COMPLETION_RATE_LIMIT, limiter
from emotions_api.gateway.gateway import CompletionGateway
from emotions_api.prompts import (
    NEGATIVE_AFFIRMATION_DISCLAIMER,
    negative_affirmation_prompt,
    positive_affirmation_prompt,
)
from emotions_api.schemas.emotions import CompletionParams
from emotions_api.services.emotion_service import metadata, run_prompt

router = APIRouter(prefix="/affirmations", tags=["affirmations"], dependencies=[Depends(require_api_key)])


async def _positive(request: Request, params: CompletionParams, gateway: CompletionGateway) -> dict:
    result = await run_prompt(
        gateway,
        "positive_affirmation",
        positive_affirmation_prompt(params.emotion, params.context),
        params,
        request_id=get_request_id(request),
    )
    return {
        "success": True,
        "type": "positive",
        "affirmation": result.text,
        "metadata": metadata(result),
        "requestParams": {"emotion": params.emotion, "context": params.context},
    }


async def _negative(request: Request, params: CompletionParams, gateway: CompletionGateway) -> dict:
    result = await run_prompt(
        gateway,
        "negative_affirmation",
        negative_affirmation_prompt(params.context),
        params,
        request_id=get_request_id(request),
    )
    return {
        "success": True,
        "type": "negative",
        "affirmation": result.text,
        "metadata": metadata(result),
        "requestParams": {"context": params.context},
        "disclaimer": NEGATIVE_AFFIRMATION_DISCLAIMER,
    }


@router.get("/positive")
@limiter.limit(COMPLETION_RATE_LIMIT)
async def positive_affirmation(
    request: Request,
    params: CompletionParams = Depends(completion_query),
    gateway: CompletionGateway = Depends(get_gateway),
):
    """Positive affirmation, optionally tailored to an emotion and context.

    Example: GET /api/v1/affirmations/positive?emotion=anxious&context=job+interview
    """
    return await _positive(request, params, gateway)


@router.post("/positive")
@limiter.limit(COMPLETION_RATE_LIMIT)
async def positive_affirmation_post(
    request: Request,
    body: CompletionParams | None = None,
    gateway: CompletionGateway = Depends(get_gateway),
):
    """Same as GET, with room for a longer context in the body."""
    return await _positive(request, body or CompletionParams(), gateway)


@router.get("/negative")
@limiter.limit(COMPLETION_RATE_LIMIT)
async def negative_affirmation(
    request: Request,
    params: CompletionParams = Depends(completion_query),
    gateway: CompletionGateway = Depends(get_gateway),
):
    """Darkly funny "negative" affirmation. Defaults to a higher temperature."""
    return await _negative(request, params, gateway)


@router.post("/negative")
@limiter.limit(COMPLETION_RATE_LIMIT)
async def negative_affirmation_post(
    request: Request,
    body: CompletionParams | None = None,
    gateway: CompletionGateway = Depends(get_gateway),
):
    return await _negative(request, body or CompletionParams(), gateway)
