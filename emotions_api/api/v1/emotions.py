"""Emotion endpoints: mood support, quotes, wellness tips, analysis, custom prompts."""

from fastapi import APIRouter, Depends, Request

from emotions_api.core.dependencies import completion_query, get_gateway, get_request_id, require_api_key
from emotions_api.core.exceptions import BadRequestError
from emotions_api.core.rate_limit import COMPLETION_RATE_LIMIT, limiter
from emotions_api.gateway.gateway import CompletionGateway
from emotions_api.prompts import (
    VALID_EMOTIONS,
    emotion_analysis_prompt,
    mood_support_prompt,
    motivational_quote_prompt,
    parse_analysis,
    truncate_for_echo,
    wellness_tip_prompt,
)
from emotions_api.schemas.emotions import CompletionParams, PromptBody
from emotions_api.services.emotion_service import metadata, run_prompt

router = APIRouter(prefix="/emotions", tags=["emotions"], dependencies=[Depends(require_api_key)])


async def _support(request: Request, params: CompletionParams, gateway: CompletionGateway, where: str) -> dict:
    if not params.emotion:
        raise BadRequestError(
            detail={
                "message": f"emotion {where} is required",
                "validEmotions": list(VALID_EMOTIONS),
            }
        )

    result = await run_prompt(
        gateway,
        "mood_support",
        mood_support_prompt(params.emotion, params.context),
        params,
        request_id=get_request_id(request),
    )
    return {
        "success": True,
        "emotion": params.emotion,
        "support": result.text,
        "metadata": metadata(result),
    }


@router.get("/support")
@limiter.limit(COMPLETION_RATE_LIMIT)
async def mood_support(
    request: Request,
    params: CompletionParams = Depends(completion_query),
    gateway: CompletionGateway = Depends(get_gateway),
):
    """Supportive message and practical suggestions for the given emotion.

    Example: GET /api/v1/emotions/support?emotion=anxious&context=upcoming+exam
    """
    return await _support(request, params, gateway, "parameter")


@router.post("/support")
@limiter.limit(COMPLETION_RATE_LIMIT)
async def mood_support_post(
    request: Request,
    body: CompletionParams | None = None,
    gateway: CompletionGateway = Depends(get_gateway),
):
    return await _support(request, body or CompletionParams(), gateway, "field in request body")


@router.get("/motivational-quote")
@limiter.limit(COMPLETION_RATE_LIMIT)
async def motivational_quote(
    request: Request,
    params: CompletionParams = Depends(completion_query),
    gateway: CompletionGateway = Depends(get_gateway),
):
    result = await run_prompt(
        gateway,
        "motivational_quote",
        motivational_quote_prompt(params.emotion, params.context),
        params,
        request_id=get_request_id(request),
    )
    return {
        "success": True,
        "quote": result.text,
        "context": params.context,
        "emotion": params.emotion,
        "metadata": metadata(result),
    }


@router.get("/wellness-tip")
@limiter.limit(COMPLETION_RATE_LIMIT)
async def wellness_tip(
    request: Request,
    params: CompletionParams = Depends(completion_query),
    gateway: CompletionGateway = Depends(get_gateway),
):
    result = await run_prompt(
        gateway,
        "wellness_tip",
        wellness_tip_prompt(params.emotion, params.context),
        params,
        request_id=get_request_id(request),
    )
    return {
        "success": True,
        "tip": result.text,
        "focus": params.context or "general",
        "emotion": params.emotion,
        "metadata": metadata(result),
    }


@router.post("/analyze")
@limiter.limit(COMPLETION_RATE_LIMIT)
async def analyze_emotion(
    request: Request,
    body: PromptBody,
    gateway: CompletionGateway = Depends(get_gateway),
):
    """Detect the primary emotion and intensity of a piece of text.

    The structured analysis is parsed from the model's JSON answer; when the
    model strays from the format the raw text is returned instead.
    """
    result = await run_prompt(
        gateway,
        "emotion_analysis",
        emotion_analysis_prompt(body.prompt),
        body,
        request_id=get_request_id(request),
    )
    return {
        "success": True,
        "analysis": parse_analysis(result.text),
        "originalText": truncate_for_echo(body.prompt),
        "metadata": metadata(result),
    }


@router.post("/custom")
@limiter.limit(COMPLETION_RATE_LIMIT)
async def custom_prompt(
    request: Request,
    body: PromptBody,
    gateway: CompletionGateway = Depends(get_gateway),
):
    """Free-form prompt under a general wellness system prompt."""
    result = await run_prompt(gateway, "custom", body.prompt, body, request_id=get_request_id(request))
    return {
        "success": True,
        "response": result.text,
        "metadata": metadata(result),
    }
