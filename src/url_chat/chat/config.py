"""Configuration for the chat completion pipeline.

Defines the provider endpoint defaults, the model identifier, and the fixed
system instruction sent with every completion request.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# API endpoint
# ---------------------------------------------------------------------------

GROQ_API_URL: str = "https://api.groq.com/openai/v1/chat/completions"
"""Groq chat completions endpoint (OpenAI-compatible)."""

DEFAULT_MODEL: str = "llama3-8b-8192"
"""Default model identifier."""

DEFAULT_COMPLETION_TIMEOUT: float = 60.0
"""Seconds to wait for the provider response."""

# ---------------------------------------------------------------------------
# Prompt templates
# ---------------------------------------------------------------------------

SYSTEM_PROMPT: str = (
    "You are a helpful assistant specializing in analyzing and summarizing "
    "large amounts of data, including text documents, web pages, numerical "
    "data, and reports.\n"
    "When responding, always:\n"
    "- Break down complex information into clear, concise points.\n"
    "- Provide step-by-step explanations for any analysis or summarization.\n"
    "- Avoid assumptions and clarify ambiguous queries by asking for more details.\n"
    "- Use examples to support explanations when appropriate."
)
"""System instruction prepended to every conversation."""

CONTENT_HEADER: str = "Content from url:"
"""Label placed between the user's message and the extracted page text."""

# ---------------------------------------------------------------------------
# Client-facing error messages
# ---------------------------------------------------------------------------

ERROR_MESSAGE_REQUIRED: str = "Message field is required."
ERROR_RATE_LIMITED: str = "Too many requests. Please try again later."
ERROR_INTERNAL: str = "Internal Server Error"
