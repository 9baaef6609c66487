"""
Unit tests for GeminiService.

The google-genai client is mocked; no network calls are made.
"""

from unittest.mock import MagicMock, patch

import pytest

from roomchat.domain.chat import HistoryTurn
from roomchat.infrastructure.ai.gemini_service import GeminiService
from roomchat.infrastructure.exceptions import AIServiceError


@pytest.fixture
def genai_client():
    client = MagicMock()
    chat = client.chats.create.return_value
    chat.send_message.return_value = MagicMock(text="Paris.")
    with patch("roomchat.infrastructure.ai.gemini_service.genai.Client", return_value=client):
        yield client


@pytest.fixture
def service():
    return GeminiService(api_key="test-key", model="gemini-2.5-pro")


class TestGenerateReply:

    @pytest.mark.asyncio
    async def test_replays_history_and_sends_prompt(self, service, genai_client):
        history = [HistoryTurn("user", "Hi"), HistoryTurn("model", "Hello!")]

        reply = await service.generate_reply(history, "Capital of France?", 2000)

        assert reply == "Paris."
        kwargs = genai_client.chats.create.call_args.kwargs
        assert kwargs["model"] == "gemini-2.5-pro"
        assert [c.role for c in kwargs["history"]] == ["user", "model"]
        assert kwargs["history"][1].parts[0].text == "Hello!"
        assert kwargs["config"].max_output_tokens == 2000
        genai_client.chats.create.return_value.send_message.assert_called_once_with("Capital of France?")

    @pytest.mark.asyncio
    async def test_provider_exception_becomes_ai_service_error(self, service, genai_client):
        genai_client.chats.create.return_value.send_message.side_effect = RuntimeError("429 quota")

        with pytest.raises(AIServiceError) as exc_info:
            await service.generate_reply([], "Hi", 2000)

        assert exc_info.value.details["model"] == "gemini-2.5-pro"
        assert isinstance(exc_info.value.original_error, RuntimeError)

    @pytest.mark.asyncio
    async def test_empty_reply_is_an_error(self, service, genai_client):
        genai_client.chats.create.return_value.send_message.return_value = MagicMock(text=None)

        with pytest.raises(AIServiceError):
            await service.generate_reply([], "Hi", 2000)

    @pytest.mark.asyncio
    async def test_missing_api_key_is_an_error(self):
        service = GeminiService(api_key=None)
        service._api_key = None

        with pytest.raises(AIServiceError):
            await service.generate_reply([], "Hi", 2000)
