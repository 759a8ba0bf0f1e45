"""Assemble the completion request from a user message and page content."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from url_chat.chat.config import CONTENT_HEADER, DEFAULT_MODEL, SYSTEM_PROMPT


@dataclass(frozen=True)
class ChatMessage:
    role: str
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class CompletionRequest:
    """An ordered list of messages plus the model to run them on."""

    model: str
    messages: tuple[ChatMessage, ...] = field(default_factory=tuple)

    def to_payload(self) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": [m.to_dict() for m in self.messages],
        }


def build_user_content(message: str, extracted_content: str | None) -> str:
    """Return the user turn: the trimmed message, then any page content.

    The ``Content from url:`` block is omitted entirely when there is no
    content (no URL, or the fetch degraded), so the model never sees an
    empty attachment.
    """
    text = message.strip()
    if not extracted_content:
        return text
    return f"{text}\n\n{CONTENT_HEADER}\n\n{extracted_content}"


def assemble_prompt(
    message: str,
    extracted_content: str | None = None,
    *,
    model: str = DEFAULT_MODEL,
    system_prompt: str = SYSTEM_PROMPT,
) -> CompletionRequest:
    """Build the two-message completion request.

    Args:
        message: The user's original message.
        extracted_content: Text extracted from the linked page, or ``None``.
        model: Provider model identifier.
        system_prompt: Fixed assistant instruction.

    Returns:
        A :class:`CompletionRequest` with a ``system`` then a ``user`` message.
    """
    return CompletionRequest(
        model=model,
        messages=(
            ChatMessage(role="system", content=system_prompt),
            ChatMessage(role="user", content=build_user_content(message, extracted_content)),
        ),
    )
