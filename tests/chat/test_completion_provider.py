"""Tests for the OpenAI-compatible completion provider.

HTTP traffic is mocked with respx; no network access is needed.
"""

from __future__ import annotations

import json

import httpx
import pytest
import respx

from url_chat.chat._completion import OpenAICompatibleProvider, extract_reply
from url_chat.chat.config import GROQ_API_URL
from url_chat.chat.prompt import assemble_prompt
from url_chat.core.exceptions import CompletionFailedError


def _completion_body(content: object) -> dict:
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}}],
    }


# ---------------------------------------------------------------------------
# extract_reply()
# ---------------------------------------------------------------------------


class TestExtractReply:
    def test_returns_first_choice_content(self) -> None:
        assert extract_reply(_completion_body("Hello")) == "Hello"

    def test_null_content_is_empty_string(self) -> None:
        assert extract_reply(_completion_body(None)) == ""

    def test_missing_message_is_empty_string(self) -> None:
        assert extract_reply({"choices": [{"index": 0}]}) == ""

    def test_empty_choices_is_malformed(self) -> None:
        with pytest.raises(CompletionFailedError):
            extract_reply({"choices": []})

    def test_missing_choices_is_malformed(self) -> None:
        with pytest.raises(CompletionFailedError):
            extract_reply({"error": {"message": "bad"}})


# ---------------------------------------------------------------------------
# OpenAICompatibleProvider.complete()
# ---------------------------------------------------------------------------


class TestComplete:
    @pytest.mark.asyncio
    async def test_posts_payload_with_bearer_key(self) -> None:
        request = assemble_prompt("Hi", "page text")

        with respx.mock() as mock:
            route = mock.post(GROQ_API_URL).mock(
                return_value=httpx.Response(200, json=_completion_body("OK"))
            )
            async with httpx.AsyncClient() as client:
                reply = await OpenAICompatibleProvider(client, "gsk-test").complete(request)

        assert reply == "OK"
        assert route.call_count == 1
        sent = route.calls.last.request
        assert sent.headers["Authorization"] == "Bearer gsk-test"
        assert json.loads(sent.content) == request.to_payload()

    @pytest.mark.asyncio
    async def test_custom_endpoint(self) -> None:
        url = "https://llm.internal.example/v1/chat/completions"

        with respx.mock() as mock:
            route = mock.post(url).mock(
                return_value=httpx.Response(200, json=_completion_body("local"))
            )
            async with httpx.AsyncClient() as client:
                provider = OpenAICompatibleProvider(client, "k", api_url=url)
                reply = await provider.complete(assemble_prompt("Hi"))

        assert reply == "local"
        assert route.called

    @pytest.mark.asyncio
    async def test_missing_api_key_fails_without_request(self) -> None:
        with respx.mock(assert_all_called=False) as mock:
            route = mock.post(GROQ_API_URL)
            async with httpx.AsyncClient() as client:
                with pytest.raises(CompletionFailedError):
                    await OpenAICompatibleProvider(client, "").complete(assemble_prompt("Hi"))

        assert not route.called

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 429, 500, 503])
    async def test_non_2xx_raises_with_status(self, status: int) -> None:
        with respx.mock() as mock:
            mock.post(GROQ_API_URL).mock(
                return_value=httpx.Response(status, json={"error": {"message": "nope"}})
            )
            async with httpx.AsyncClient() as client:
                with pytest.raises(CompletionFailedError) as exc_info:
                    await OpenAICompatibleProvider(client, "k").complete(assemble_prompt("Hi"))

        assert exc_info.value.status_code == status

    @pytest.mark.asyncio
    async def test_timeout_raises(self) -> None:
        with respx.mock() as mock:
            mock.post(GROQ_API_URL).mock(side_effect=httpx.ReadTimeout("timed out"))
            async with httpx.AsyncClient() as client:
                with pytest.raises(CompletionFailedError) as exc_info:
                    await OpenAICompatibleProvider(client, "k").complete(assemble_prompt("Hi"))

        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_connection_error_raises(self) -> None:
        with respx.mock() as mock:
            mock.post(GROQ_API_URL).mock(side_effect=httpx.ConnectError("refused"))
            async with httpx.AsyncClient() as client:
                with pytest.raises(CompletionFailedError):
                    await OpenAICompatibleProvider(client, "k").complete(assemble_prompt("Hi"))

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self) -> None:
        with respx.mock() as mock:
            mock.post(GROQ_API_URL).mock(
                return_value=httpx.Response(200, content=b"<html>gateway</html>")
            )
            async with httpx.AsyncClient() as client:
                with pytest.raises(CompletionFailedError):
                    await OpenAICompatibleProvider(client, "k").complete(assemble_prompt("Hi"))
