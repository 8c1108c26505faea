"""OpenAI-compatible endpoints (xAI, OpenRouter, DeepSeek) via the openai SDK."""

from openai import AsyncOpenAI

from arena.providers.base import ProviderError
from arena.providers.openai_provider import OpenAIProvider
from config.config_loader import ModelConfig


class OpenAICompatibleProvider(OpenAIProvider):
    """Any chat-completions API reachable through a custom base_url."""

    def __init__(self, config: ModelConfig) -> None:
        if not config.base_url:
            raise ProviderError(config.name, "base_url is required for OpenAI-compatible providers")
        super().__init__(config)

    def _make_client(self, api_key: str) -> AsyncOpenAI:
        return AsyncOpenAI(api_key=api_key, base_url=self._config.base_url)
