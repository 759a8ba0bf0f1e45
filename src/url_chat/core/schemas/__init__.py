"""Pydantic schemas for request/response validation.

Sub-modules:
    chat: ChatRequest, ChatReply, ChatError, RateLimitedReply
"""

from __future__ import annotations
