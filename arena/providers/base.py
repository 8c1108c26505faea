"""Abstract base for all AI model providers."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any

from arena.models import ChatMessage, ToolCall


class ProviderError(Exception):
    """Raised when a provider call fails."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


class AIProvider(ABC):
    """Abstract base for all AI model providers."""

    @abstractmethod
    def name(self) -> str:
        """Return the short backend id (e.g. 'gemini', 'claude')."""
        ...

    @abstractmethod
    def model_string(self) -> str:
        """Return the actual model identifier string."""
        ...

    def display_name(self) -> str:
        return self.name()

    def timeout_sec(self) -> float | None:
        """Upper bound for one full stream, or None to use the round default."""
        return None

    def supports_tools(self) -> bool:
        return False

    @abstractmethod
    def stream(self, messages: list[ChatMessage]) -> AsyncIterator[str]:
        """Stream a completion for the conversation as text fragments.

        Args:
            messages: System, user and assistant messages in order.

        Yields:
            Content fragments in the order the backend produced them.

        Raises:
            ProviderError: On API failure or invalid response.
        """
        ...

    def stream_tool_calls(
        self,
        messages: list[ChatMessage],
        tools: list[dict[str, Any]],
    ) -> AsyncIterator[ToolCall]:
        """Stream completed tool calls from one assistant turn.

        ``tools`` use the JSON-schema shape ``{name, description, input_schema}``.
        Only providers whose ``supports_tools()`` is True implement this.
        """
        raise ProviderError(self.name(), "Tool calling is not supported by this provider")


def split_system(messages: list[ChatMessage]) -> tuple[str, list[ChatMessage]]:
    """Separate system messages (joined) from the rest of the conversation."""
    system = "\n\n".join(m.content or "" for m in messages if m.role == "system")
    rest = [m for m in messages if m.role != "system"]
    return system, rest
