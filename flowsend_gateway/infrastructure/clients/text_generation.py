"""Gemini text-generation backend for intent classification and conversational replies"""

import logging
from typing import List, Sequence

from google import genai
from google.genai import types

from flowsend_gateway.domain.exceptions import TextGenerationUnavailableError
from flowsend_gateway.domain.models import ConversationTurn

logger = logging.getLogger(__name__)


class GeminiTextGenerator:
    """
    Async client for the Gemini API.

    Implements the text generator interface used by the classifier and the
    chat endpoint: `generate(prompt)` and `reply(system_prompt, history, message)`.
    Raises TextGenerationUnavailableError when not configured or on backend failure.
    """

    def __init__(self, api_key: str | None, model: str = "gemini-2.5-flash"):
        self.model = model
        self._client = genai.Client(api_key=api_key) if api_key else None

    @property
    def is_configured(self) -> bool:
        return self._client is not None

    def _require_client(self) -> genai.Client:
        if self._client is None:
            raise TextGenerationUnavailableError("GEMINI_API_KEY is not configured")
        return self._client

    async def generate(self, prompt: str) -> str:
        client = self._require_client()
        try:
            response = await client.aio.models.generate_content(model=self.model, contents=prompt)
        except Exception as e:
            logger.warning("Gemini generate failed", extra={"error": str(e)})
            raise TextGenerationUnavailableError(str(e)) from e
        return (response.text or "").strip()

    async def reply(self, system_prompt: str, history: Sequence[ConversationTurn], message: str) -> str:
        """Continue the visible conversation with the given system instructions"""
        client = self._require_client()
        contents: List[types.Content] = [
            types.Content(
                role="user" if turn.role == "user" else "model",
                parts=[types.Part(text=turn.content)],
            )
            for turn in history
        ]
        contents.append(types.Content(role="user", parts=[types.Part(text=message)]))
        config = types.GenerateContentConfig(
            system_instruction=system_prompt,
            temperature=0.7,
            top_k=40,
            top_p=0.95,
            max_output_tokens=1024,
        )
        try:
            response = await client.aio.models.generate_content(model=self.model, contents=contents, config=config)
        except Exception as e:
            logger.warning("Gemini chat failed", extra={"error": str(e)})
            raise TextGenerationUnavailableError(str(e)) from e
        return (response.text or "").strip()
