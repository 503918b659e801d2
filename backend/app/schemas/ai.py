"""AI endpoint request/response schemas."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

_DATA_IMAGE_PREFIX = "data:image/"

# ~10 MB of base64 per image
_MAX_IMAGE_URL_LENGTH = 14_000_000


def _validate_data_image(value: str) -> str:
    if not value.startswith(_DATA_IMAGE_PREFIX):
        msg = "Image must be a valid base64 data URL (data:image/...)"
        raise ValueError(msg)
    if len(value) > _MAX_IMAGE_URL_LENGTH:
        msg = "Image is too large"
        raise ValueError(msg)
    return value


class ChatMessageIn(BaseModel):
    """One message of the conversation sent by the client.

    Attributes:
        role: user or assistant. System prompts are built server-side.
        content: Message text.
        images: Optional whiteboard snapshots as data:image/ URLs.
    """

    model_config = ConfigDict(extra="forbid")

    role: Literal["user", "assistant"]
    content: str = Field(default="", max_length=20_000)
    images: list[str] | None = Field(default=None, max_length=4)

    @field_validator("images")
    @classmethod
    def validate_images(cls, v: list[str] | None) -> list[str] | None:
        """Only inline data URLs are accepted."""
        if v is None:
            return v
        return [_validate_data_image(image) for image in v]


class CanvasContext(BaseModel):
    """What the student is working on."""

    model_config = ConfigDict(extra="forbid")

    subject: str | None = Field(default=None, max_length=200)
    grade_level: str | None = Field(default=None, max_length=100)
    instructions: str | None = Field(default=None, max_length=2000)
    description: str | None = Field(default=None, max_length=2000)


class ChatRequest(BaseModel):
    """Request body for POST /api/v1/ai/chat."""

    model_config = ConfigDict(extra="forbid")

    messages: list[ChatMessageIn] = Field(..., min_length=1, max_length=50)
    canvas_context: CanvasContext | None = None


class SolveMathRequest(BaseModel):
    """Request body for POST /api/v1/ai/solve-math.

    Attributes:
        expression: Expression or equation to solve, as recognized from the board.
        variables: Known variable values to substitute.
    """

    model_config = ConfigDict(extra="forbid")

    expression: str = Field(..., min_length=1, max_length=2000)
    variables: dict[str, int | float | str] | None = Field(
        default=None, max_length=50
    )


class OcrRequest(BaseModel):
    """Request body for POST /api/v1/ai/ocr."""

    model_config = ConfigDict(extra="forbid")

    image: str

    @field_validator("image")
    @classmethod
    def validate_image(cls, v: str) -> str:
        """Require a data:image/ URL."""
        return _validate_data_image(v)


class AICompletionResponse(BaseModel):
    """Response for the AI endpoints.

    Attributes:
        content: Model output (for OCR, the extracted expression).
        provider: Provider that answered.
        model: Model that answered.
        tier: premium (billed in credits) or free.
        credit_balance: Remaining credits after this request.
    """

    model_config = ConfigDict(extra="forbid")

    content: str
    provider: str
    model: str
    tier: Literal["premium", "free"]
    credit_balance: int
