"""Text-only message transformation for the free provider.

The free tier cannot see images. Requests routed there have their images
stripped and the system prompt extended so the model asks the student to
describe their whiteboard instead of pretending to see it.
"""

from app.providers.llm.base import LLMMessage

TEXT_ONLY_SYSTEM_ADDITION = """
IMPORTANT: You are currently in text-only mode and cannot see any images or the student's canvas.
If the student mentions their work on a whiteboard or canvas, ask them to describe what they've written or drawn.
You can still provide helpful math tutoring and guidance, but you cannot provide visual feedback on handwritten work.
Be helpful and acknowledge that you cannot see their canvas when relevant."""

IMAGE_DROPPED_NOTE = (
    "(Note: I shared an image of my whiteboard, but I understand you can't "
    "see images in this mode.)"
)

EMPTY_CONTENT_PLACEHOLDER = "I shared something on my whiteboard."


def text_only_system_prompt(system_prompt: str) -> str:
    """Append the text-only notice to a system prompt."""
    return f"{system_prompt}\n{TEXT_ONLY_SYSTEM_ADDITION}"


def to_text_only(messages: list[LLMMessage]) -> list[LLMMessage]:
    """Return copies of messages with all image content removed.

    A user message that carried images gets a note appended so the model
    knows something was shared. Messages left empty get a placeholder.
    System messages are extended with the text-only notice; without one,
    the notice is inserted as the first message.

    Args:
        messages: Original (possibly multimodal) messages.

    Returns:
        New list of text-only messages. The input is not modified.
    """
    converted: list[LLMMessage] = []
    for msg in messages:
        content = msg.content or ""
        if msg.role == "system":
            content = text_only_system_prompt(content)
        elif msg.images and msg.role == "user":
            content = f"{content}\n\n{IMAGE_DROPPED_NOTE}" if content else IMAGE_DROPPED_NOTE
        converted.append(
            LLMMessage(role=msg.role, content=content or EMPTY_CONTENT_PLACEHOLDER)
        )
    if not any(msg.role == "system" for msg in messages):
        converted.insert(
            0, LLMMessage(role="system", content=TEXT_ONLY_SYSTEM_ADDITION.strip())
        )
    return converted
