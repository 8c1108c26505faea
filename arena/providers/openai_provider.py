"""OpenAI provider using openai SDK with native async streaming."""

import logging
import os
from collections.abc import AsyncIterator
from typing import Any

from openai import AsyncOpenAI

from arena.models import ChatMessage, ToolCall
from arena.providers.base import AIProvider, ProviderError
from config.config_loader import ModelConfig

logger = logging.getLogger(__name__)


def to_openai_messages(messages: list[ChatMessage]) -> list[dict[str, Any]]:
    converted: list[dict[str, Any]] = []
    for m in messages:
        if m.role == "tool":
            converted.append({"role": "tool", "tool_call_id": m.tool_call_id, "content": m.content or ""})
        elif m.tool_calls:
            converted.append({
                "role": "assistant",
                "content": m.content,
                "tool_calls": [
                    {
                        "id": tc.id,
                        "type": "function",
                        "function": {"name": tc.name, "arguments": tc.arguments},
                    }
                    for tc in m.tool_calls
                ],
            })
        else:
            converted.append({"role": m.role, "content": m.content or ""})
    return converted


def to_openai_tools(tools: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [
        {
            "type": "function",
            "function": {
                "name": t["name"],
                "description": t["description"],
                "parameters": t["input_schema"],
            },
        }
        for t in tools
    ]


class OpenAIProvider(AIProvider):
    """OpenAI provider via openai SDK."""

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = self._make_client(api_key)

    def _make_client(self, api_key: str) -> AsyncOpenAI:
        return AsyncOpenAI(api_key=api_key)

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

    async def _open(self, **kwargs: Any) -> Any:
        try:
            return await self._client.chat.completions.create(
                model=self._config.model,
                max_tokens=self._config.max_tokens,
                stream=True,
                **kwargs,
            )
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc

    async def stream(self, messages: list[ChatMessage]) -> AsyncIterator[str]:
        response = await self._open(messages=to_openai_messages(messages))
        try:
            async for chunk in response:
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    yield content
        except ProviderError:
            raise
        except Exception as exc:
            raise ProviderError(self._config.name, f"Stream failed: {exc}") from exc
        finally:
            await response.close()

    async def stream_tool_calls(
        self,
        messages: list[ChatMessage],
        tools: list[dict[str, Any]],
    ) -> AsyncIterator[ToolCall]:
        response = await self._open(
            messages=to_openai_messages(messages),
            tools=to_openai_tools(tools),
            tool_choice="auto",
        )
        # Tool call deltas arrive fragmented by index; a new index closes the previous one.
        pending: dict[int, dict[str, str]] = {}
        current: int | None = None
        try:
            async for chunk in response:
                if not chunk.choices:
                    continue
                for delta in chunk.choices[0].delta.tool_calls or []:
                    if current is not None and delta.index != current and current in pending:
                        yield self._finish(current, pending.pop(current))
                    current = delta.index
                    slot = pending.setdefault(delta.index, {"id": "", "name": "", "arguments": ""})
                    if delta.id:
                        slot["id"] = delta.id
                    if delta.function is not None:
                        if delta.function.name:
                            slot["name"] += delta.function.name
                        if delta.function.arguments:
                            slot["arguments"] += delta.function.arguments
        except ProviderError:
            raise
        except Exception as exc:
            raise ProviderError(self._config.name, f"Stream failed: {exc}") from exc
        finally:
            await response.close()

        for index in sorted(pending):
            yield self._finish(index, pending[index])

    @staticmethod
    def _finish(index: int, slot: dict[str, str]) -> ToolCall:
        return ToolCall(
            id=slot["id"] or f"call_{index}",
            name=slot["name"],
            arguments=slot["arguments"] or "{}",
        )
