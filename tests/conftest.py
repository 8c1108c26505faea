"""Shared pytest fixtures."""

import asyncio
import itertools
import json
from collections.abc import AsyncIterator, Sequence
from pathlib import Path
from typing import Any

import pytest

from arena.models import ChatMessage, ToolCall
from arena.providers.base import AIProvider
from arena.store import PreferenceStore
from config.config_loader import AppConfig, load_config

_call_ids = itertools.count(1)


def tool_call(name: str, **arguments: Any) -> ToolCall:
    """Build a judge tool call with JSON-encoded arguments."""
    return ToolCall(id=f"call_{next(_call_ids)}", name=name, arguments=json.dumps(arguments))


class MockProvider(AIProvider):
    """Test double AIProvider that streams canned fragments.

    ``delay`` is slept before every fragment. ``error`` is raised once
    ``error_after`` fragments have been sent.
    """

    def __init__(
        self,
        provider_name: str = "mock",
        chunks: Sequence[str] = ("Mock ", "response"),
        delay: float = 0.0,
        error: Exception | None = None,
        error_after: int = 0,
        timeout: float | None = None,
    ) -> None:
        self._name = provider_name
        self._chunks = list(chunks)
        self._delay = delay
        self._error = error
        self._error_after = error_after
        self._timeout = timeout
        self.calls: list[list[ChatMessage]] = []
        self.closed = False

    def name(self) -> str:
        return self._name

    def model_string(self) -> str:
        return "mock-model"

    def timeout_sec(self) -> float | None:
        return self._timeout

    async def stream(self, messages: list[ChatMessage]) -> AsyncIterator[str]:
        self.calls.append(messages)
        try:
            for idx, chunk in enumerate(self._chunks):
                if self._error is not None and idx == self._error_after:
                    raise self._error
                if self._delay:
                    await asyncio.sleep(self._delay)
                yield chunk
            if self._error is not None:
                if self._delay:
                    await asyncio.sleep(self._delay)
                raise self._error
        finally:
            self.closed = True


class MockJudgeProvider(AIProvider):
    """Tool-calling test double. Each entry of ``turns`` is one assistant turn."""

    def __init__(
        self,
        turns: Sequence[Sequence[ToolCall]] = (),
        provider_name: str = "judge",
        error: Exception | None = None,
    ) -> None:
        self._name = provider_name
        self._turns = [list(t) for t in turns]
        self._error = error
        self.requests: list[tuple[list[ChatMessage], list[dict[str, Any]]]] = []

    def name(self) -> str:
        return self._name

    def model_string(self) -> str:
        return "mock-judge"

    def supports_tools(self) -> bool:
        return True

    async def stream(self, messages: list[ChatMessage]) -> AsyncIterator[str]:
        yield "judge text"

    async def stream_tool_calls(
        self,
        messages: list[ChatMessage],
        tools: list[dict[str, Any]],
    ) -> AsyncIterator[ToolCall]:
        self.requests.append((list(messages), tools))
        if self._error is not None:
            raise self._error
        turn = self._turns.pop(0) if self._turns else []
        for call in turn:
            yield call


def full_judging(backends: Sequence[str], winner: str, criteria: Sequence[str] = ("reasoning", "clarity")) -> list[ToolCall]:
    """One turn scoring every backend on ``criteria`` and naming ``winner``."""
    calls = [tool_call("write_opening_remarks", remarks="Let the games begin.")]
    for backend in backends:
        for criterion in criteria:
            score = 9 if backend == winner else 6
            calls.append(tool_call(f"score_{criterion}", model=backend, score=score, rationale="solid work"))
    calls.append(tool_call("generate_verdict", winner=winner, verdict=f"{winner} takes it.", quotable_line="Clean sweep."))
    return calls


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    """The shipped settings.yaml with paths pointed at tmp_path."""
    config = load_config()
    config.defaults.db_path = tmp_path / "data" / "preferences.db"
    config.defaults.output_dir = tmp_path / "output"
    config.defaults.stream_timeout_sec = 5.0
    return config


@pytest.fixture
def store(tmp_path: Path) -> PreferenceStore:
    return PreferenceStore(tmp_path / "prefs.db")


@pytest.fixture
def mock_provider() -> MockProvider:
    return MockProvider()


@pytest.fixture
def three_mock_providers() -> dict[str, MockProvider]:
    return {
        "claude": MockProvider("claude", ["Claude ", "says ", "hi"]),
        "gpt": MockProvider("gpt", ["GPT ", "says ", "hi"]),
        "gemini": MockProvider("gemini", ["Gemini ", "says ", "hi"]),
    }

