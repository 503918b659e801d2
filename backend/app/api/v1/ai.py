"""AI API router.

Tutor chat, math solving and handwriting OCR. Each route bills a fixed
operation kind through TieredAIService, which charges credits for the
premium provider and falls back to the free text-only provider.
"""

import re

from fastapi import APIRouter, Request

from app.api.deps import AIService, CurrentUserId
from app.core.config import settings
from app.core.rate_limiting import limiter
from app.core.responses import DataResponse
from app.prompts.tutor import (
    OCR_INSTRUCTION,
    SOLVE_MATH_SYSTEM_PROMPT,
    build_chat_system_prompt,
    build_solve_math_prompt,
)
from app.providers.llm.base import AIOperation, LLMMessage
from app.schemas.ai import (
    AICompletionResponse,
    ChatRequest,
    OcrRequest,
    SolveMathRequest,
)
from app.services.ai_gateway import TieredCompletion

router = APIRouter()

_ANSWER_PREFIX = re.compile(r"^(answer|result|solution):\s*", re.IGNORECASE)


def _clean_answer(content: str) -> str:
    """Strip markdown and a leading "Answer:" label from a solver reply."""
    answer = content.strip().replace("**", "").replace("`", "")
    answer = _ANSWER_PREFIX.sub("", answer)
    return answer or "?"


def _completion_response(result: TieredCompletion) -> AICompletionResponse:
    return AICompletionResponse(
        content=result.content,
        provider=result.provider,
        model=result.model,
        tier=result.tier,
        credit_balance=result.credit_balance,
    )


@router.post("/chat")
@limiter.limit(settings.rate_limit_ai)
async def chat(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: ChatRequest,
    user_id: CurrentUserId,
    ai: AIService,
) -> DataResponse[AICompletionResponse]:
    """Answer the student's latest message.

    Whiteboard images are only seen by the premium provider; on the free
    tier they are replaced with a note asking the student to describe them.
    """
    context = body.canvas_context
    system_prompt = build_chat_system_prompt(
        subject=context.subject if context else None,
        grade_level=context.grade_level if context else None,
        instructions=context.instructions if context else None,
        description=context.description if context else None,
    )
    messages = [LLMMessage(role="system", content=system_prompt)]
    messages.extend(
        LLMMessage(role=m.role, content=m.content, images=m.images)
        for m in body.messages
    )

    result = await ai.complete(user_id, AIOperation.CHAT, messages)
    return DataResponse(data=_completion_response(result))


@router.post("/solve-math")
@limiter.limit(settings.rate_limit_ai)
async def solve_math(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: SolveMathRequest,
    user_id: CurrentUserId,
    ai: AIService,
) -> DataResponse[AICompletionResponse]:
    """Return only the final answer for an expression, "?" if unsolvable."""
    messages = [
        LLMMessage(role="system", content=SOLVE_MATH_SYSTEM_PROMPT),
        LLMMessage(
            role="user",
            content=build_solve_math_prompt(body.expression, body.variables),
        ),
    ]
    result = await ai.complete(
        user_id,
        AIOperation.SOLVE_MATH,
        messages,
        description="Math solving",
        max_tokens=100,
    )
    return DataResponse(
        data=_completion_response(result).model_copy(
            update={"content": _clean_answer(result.content)}
        )
    )


@router.post("/ocr")
@limiter.limit(settings.rate_limit_ai)
async def ocr(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: OcrRequest,
    user_id: CurrentUserId,
    ai: AIService,
) -> DataResponse[AICompletionResponse]:
    """Extract the math expression from a handwriting snapshot.

    Needs vision, so it is never served by the free provider: without
    credits it returns 402 INSUFFICIENT_CREDITS.
    """
    messages = [
        LLMMessage(role="user", content=OCR_INSTRUCTION, images=[body.image]),
    ]
    result = await ai.complete(
        user_id,
        AIOperation.OCR,
        messages,
        description="Handwriting recognition",
        requires_vision=True,
    )
    return DataResponse(
        data=_completion_response(result).model_copy(
            update={"content": result.content.strip()}
        )
    )
