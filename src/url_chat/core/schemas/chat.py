"""Pydantic schemas for the chat endpoint.

These models document the wire format in the OpenAPI schema.  Validation of
``message`` happens in the orchestrator so that a missing or blank message
produces the same ``{"error": ...}`` body as every other failure instead of
FastAPI's 422 validation payload.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    """Inbound chat request."""

    message: str = Field(
        ...,
        description=(
            "Free-text question.  If it contains an http(s) URL, the first "
            "URL is rendered and its text is added to the prompt."
        ),
        examples=["Summarize https://example.com/article"],
    )


class ChatReply(BaseModel):
    """Successful completion."""

    reply: str


class ChatError(BaseModel):
    """Client-safe error body (400 and 500)."""

    error: str


class RateLimitedReply(ChatError):
    """429 body with back-off metadata."""

    remaining: int = Field(..., ge=0)
    reset_at: datetime = Field(
        ..., description="When the current rate-limit window ends (UTC)."
    )
