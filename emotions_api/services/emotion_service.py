"""Emotion service: runs a catalogue prompt through the completion gateway."""

import logging

from emotions_api.gateway.gateway import CompletionGateway
from emotions_api.gateway.types import CompletionResult
from emotions_api.prompts import ENDPOINT_DEFAULTS, SYSTEM_PROMPTS
from emotions_api.schemas.emotions import CompletionMetadata, GenerationOptions

logger = logging.getLogger(__name__)


async def run_prompt(
    gateway: CompletionGateway,
    kind: str,
    user_prompt: str,
    options: GenerationOptions,
    request_id: str | None = None,
) -> CompletionResult:
    """Complete ``user_prompt`` under the system prompt registered for ``kind``.

    Per-endpoint defaults fill in ``max_tokens`` / ``temperature`` only when
    the client left them out; everything else is the gateway's business.
    """
    defaults = ENDPOINT_DEFAULTS[kind]
    max_tokens = options.max_tokens if options.max_tokens not in (None, "") else defaults.max_tokens
    temperature = options.temperature if options.temperature not in (None, "") else defaults.temperature

    logger.debug("Running %s prompt (request_id=%s)", kind, request_id)
    return await gateway.prompt_with_system(
        SYSTEM_PROMPTS[kind],
        user_prompt,
        model=options.model,
        max_tokens=max_tokens,
        temperature=temperature,
        request_id=request_id,
    )


def metadata(result: CompletionResult) -> dict:
    return CompletionMetadata.from_result(result).model_dump(by_alias=True)
