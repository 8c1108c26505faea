"""Gemini provider using google-genai SDK with native async streaming."""

import logging
import os
from collections.abc import AsyncIterator

from google import genai
from google.genai import types as genai_types

from arena.models import ChatMessage
from arena.providers.base import AIProvider, ProviderError, split_system
from config.config_loader import ModelConfig

logger = logging.getLogger(__name__)


def to_gemini_contents(messages: list[ChatMessage]) -> list[genai_types.Content]:
    return [
        genai_types.Content(
            role="model" if m.role == "assistant" else "user",
            parts=[genai_types.Part(text=m.content or "")],
        )
        for m in messages
    ]


class GeminiProvider(AIProvider):
    """Google Gemini provider via google-genai SDK. Text only; not used as a judge."""

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = genai.Client(api_key=api_key)

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    def display_name(self) -> str:
        return self._config.display_name

    def timeout_sec(self) -> float | None:
        return self._config.timeout_sec

    async def stream(self, messages: list[ChatMessage]) -> AsyncIterator[str]:
        system, rest = split_system(messages)
        try:
            response = await self._client.aio.models.generate_content_stream(
                model=self._config.model,
                contents=to_gemini_contents(rest),
                config=genai_types.GenerateContentConfig(
                    max_output_tokens=self._config.max_tokens,
                    system_instruction=system or None,
                ),
            )
            async for chunk in response:
                if chunk.text:
                    yield chunk.text
        except Exception as exc:
            raise ProviderError(self._config.name, f"Stream failed: {exc}") from exc
