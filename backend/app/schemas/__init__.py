"""Pydantic request/response schemas for API endpoints."""

from app.schemas.ai import (
    AICompletionResponse,
    CanvasContext,
    ChatMessageIn,
    ChatRequest,
    OcrRequest,
    SolveMathRequest,
)
from app.schemas.credits import (
    BalanceResponse,
    CreditCheckResponse,
    CreditCostResponse,
    CreditGrantResponse,
    CreditTransactionResponse,
    GrantCreditsRequest,
    OpenAccountRequest,
)

__all__ = [
    # AI
    "AICompletionResponse",
    "CanvasContext",
    "ChatMessageIn",
    "ChatRequest",
    "OcrRequest",
    "SolveMathRequest",
    # Credits
    "BalanceResponse",
    "CreditCheckResponse",
    "CreditCostResponse",
    "CreditGrantResponse",
    "CreditTransactionResponse",
    "GrantCreditsRequest",
    "OpenAccountRequest",
]
