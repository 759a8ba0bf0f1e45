"""Unit tests for prompt assembly."""

from __future__ import annotations

from url_chat.chat.config import CONTENT_HEADER, DEFAULT_MODEL, SYSTEM_PROMPT
from url_chat.chat.prompt import (
    ChatMessage,
    CompletionRequest,
    assemble_prompt,
    build_user_content,
)


class TestBuildUserContent:
    def test_message_only_when_no_content(self) -> None:
        assert build_user_content("  What is new?  ", None) == "What is new?"

    def test_empty_content_omits_block(self) -> None:
        result = build_user_content("Summarise https://example.com", "")

        assert result == "Summarise https://example.com"
        assert CONTENT_HEADER not in result

    def test_content_appended_after_header(self) -> None:
        result = build_user_content("Summarise https://example.com\n", "A\nB")

        assert result == "Summarise https://example.com\n\nContent from url:\n\nA\nB"


class TestAssemblePrompt:
    def test_system_then_user(self) -> None:
        request = assemble_prompt("Hi")

        assert [m.role for m in request.messages] == ["system", "user"]
        assert request.messages[0].content == SYSTEM_PROMPT
        assert request.messages[1].content == "Hi"
        assert request.model == DEFAULT_MODEL

    def test_model_and_system_prompt_overridable(self) -> None:
        request = assemble_prompt("Hi", model="mixtral-8x7b", system_prompt="Be brief.")

        assert request.model == "mixtral-8x7b"
        assert request.messages[0].content == "Be brief."

    def test_deterministic(self) -> None:
        assert assemble_prompt("Hi", "page") == assemble_prompt("Hi", "page")

    def test_system_prompt_asks_for_steps_and_clarification(self) -> None:
        lowered = SYSTEM_PROMPT.lower()

        assert "step-by-step" in lowered
        assert "clarify" in lowered
        assert "examples" in lowered


class TestPayload:
    def test_to_payload_shape(self) -> None:
        request = CompletionRequest(
            model="llama3-8b-8192",
            messages=(ChatMessage("system", "S"), ChatMessage("user", "U")),
        )

        assert request.to_payload() == {
            "model": "llama3-8b-8192",
            "messages": [
                {"role": "system", "content": "S"},
                {"role": "user", "content": "U"},
            ],
        }
