"""
Gemini AI Service for Room Chat AI

Uses the google.genai SDK to continue a room's conversation: prior turns
are replayed as chat history and the new user message is sent on top.
"""

import asyncio
import logging
from functools import lru_cache
from typing import List, Optional, Sequence

from google import genai
from google.genai import types

from roomchat.config.settings import get_settings
from roomchat.domain.chat import HistoryTurn
from roomchat.infrastructure.exceptions import (
    AIServiceError,
    ConfigurationError,
)


logger = logging.getLogger(__name__)


class GeminiService:
    """
    Gemini chat client.

    Every failure (transport, quota, safety block, empty reply) is raised as
    AIServiceError so callers have one provider error to handle.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
    ):
        settings = get_settings()
        self._api_key = api_key or settings.google_api_key
        self.model = model or settings.gemini_model
        self._client: Optional[genai.Client] = None

    @property
    def client(self) -> genai.Client:
        """Get the Gemini client instance."""
        if self._client is None:
            if not self._api_key:
                raise ConfigurationError(
                    "Missing GOOGLE_API_KEY environment variable",
                    missing_keys=["GOOGLE_API_KEY"]
                )
            self._client = genai.Client(api_key=self._api_key)
            logger.info(f"GeminiService initialized with model: {self.model}")
        return self._client

    @staticmethod
    def _to_contents(history: Sequence[HistoryTurn]) -> List[types.Content]:
        return [
            types.Content(role=turn.role, parts=[types.Part(text=turn.text)])
            for turn in history
        ]

    def _send(
        self,
        history: Sequence[HistoryTurn],
        prompt: str,
        max_output_tokens: int,
    ) -> str:
        chat = self.client.chats.create(
            model=self.model,
            history=self._to_contents(history),
            config=types.GenerateContentConfig(max_output_tokens=max_output_tokens),
        )
        response = chat.send_message(prompt)
        return response.text

    async def generate_reply(
        self,
        history: Sequence[HistoryTurn],
        prompt: str,
        max_output_tokens: int,
    ) -> str:
        """
        Generate the assistant's next turn.

        Args:
            history: Prior turns, oldest first, roles "user"/"model"
            prompt: The new user message
            max_output_tokens: Output length budget

        Returns:
            Generated text

        Raises:
            AIServiceError: on any provider failure or an empty reply
        """
        try:
            text = await asyncio.to_thread(self._send, history, prompt, max_output_tokens)
        except Exception as e:
            raise AIServiceError(
                f"Failed to generate reply: {str(e)}",
                model=self.model,
                operation="generate_reply",
                original_error=e,
            ) from e

        if not text:
            raise AIServiceError(
                "Empty response from Gemini",
                model=self.model,
                operation="generate_reply",
            )

        return text


@lru_cache
def get_gemini_service() -> GeminiService:
    """Get cached Gemini service instance."""
    return GeminiService()
