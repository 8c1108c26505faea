"""Anthropic Claude provider using anthropic SDK with native async streaming."""

import json
import logging
import os
from collections.abc import AsyncIterator
from typing import Any

import anthropic as anthropic_sdk

from arena.models import ChatMessage, ToolCall
from arena.providers.base import AIProvider, ProviderError, split_system
from config.config_loader import ModelConfig

logger = logging.getLogger(__name__)


def to_anthropic_messages(messages: list[ChatMessage]) -> list[dict[str, Any]]:
    """Convert chat history to Messages API blocks. Tool results ride in user turns."""
    converted: list[dict[str, Any]] = []
    for m in messages:
        if m.role == "tool":
            block = {"type": "tool_result", "tool_use_id": m.tool_call_id, "content": m.content or ""}
            if converted and converted[-1]["role"] == "user" and isinstance(converted[-1]["content"], list):
                converted[-1]["content"].append(block)
            else:
                converted.append({"role": "user", "content": [block]})
        elif m.tool_calls:
            blocks: list[dict[str, Any]] = []
            if m.content:
                blocks.append({"type": "text", "text": m.content})
            for tc in m.tool_calls:
                try:
                    tool_input = json.loads(tc.arguments or "{}")
                except json.JSONDecodeError:
                    tool_input = {}
                blocks.append({"type": "tool_use", "id": tc.id, "name": tc.name, "input": tool_input})
            converted.append({"role": "assistant", "content": blocks})
        else:
            converted.append({"role": m.role, "content": m.content or ""})
    return converted


class AnthropicProvider(AIProvider):
    """Anthropic Claude provider via anthropic SDK."""

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = anthropic_sdk.AsyncAnthropic(api_key=api_key)

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    def display_name(self) -> str:
        return self._config.display_name

    def timeout_sec(self) -> float | None:
        return self._config.timeout_sec

    def supports_tools(self) -> bool:
        return True

    def _request(self, messages: list[ChatMessage], **extra: Any) -> dict[str, Any]:
        system, rest = split_system(messages)
        request: dict[str, Any] = {
            "model": self._config.model,
            "max_tokens": self._config.max_tokens,
            "messages": to_anthropic_messages(rest),
            **extra,
        }
        if system:
            request["system"] = system
        return request

    async def stream(self, messages: list[ChatMessage]) -> AsyncIterator[str]:
        try:
            async with self._client.messages.stream(**self._request(messages)) as stream:
                async for text in stream.text_stream:
                    if text:
                        yield text
        except Exception as exc:
            raise ProviderError(self._config.name, f"Stream failed: {exc}") from exc

    async def stream_tool_calls(
        self,
        messages: list[ChatMessage],
        tools: list[dict[str, Any]],
    ) -> AsyncIterator[ToolCall]:
        request = self._request(messages, tools=tools, tool_choice={"type": "auto"})
        try:
            async with self._client.messages.stream(**request) as stream:
                async for event in stream:
                    if event.type != "content_block_stop":
                        continue
                    block = event.content_block
                    if block.type == "tool_use":
                        yield ToolCall(id=block.id, name=block.name, arguments=json.dumps(block.input))
        except Exception as exc:
            raise ProviderError(self._config.name, f"Stream failed: {exc}") from exc
