"""Round orchestration: concurrent backend streams, lifecycle tracking, fan-in events."""

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Sequence
from contextlib import aclosing

from arena.models import BackendResponse, BackendStatus, ChatMessage, PriorRound, RoundEvent
from arena.providers.base import AIProvider, ProviderError

logger = logging.getLogger(__name__)

_DEFAULT_SYSTEM_PROMPT = (
    "You are participating in a debate. Provide a clear, well-reasoned response to the topic. "
    "Be concise but thorough. Aim for 2-3 paragraphs."
)


def build_system_prompt(base_prompt: str, context: Sequence[PriorRound]) -> str:
    """Append prior rounds to the arena's system prompt so backends can continue."""
    if not context:
        return base_prompt

    parts = [
        base_prompt,
        "",
        "This is a continuation of an ongoing session. Here is what was discussed previously:",
        "",
    ]
    for idx, prior in enumerate(context, start=1):
        parts.append(f"--- Round {idx} ---")
        parts.append(f"Topic: {prior.prompt}")
        parts.append("")
        for backend, response in prior.responses.items():
            parts.append(f"{backend}'s response:")
            parts.append(response)
            parts.append("")
    parts.append("--- Current Round ---")
    parts.append("Now respond to the new topic/question, taking into account the previous discussion.")
    return "\n".join(parts)


def build_messages(prompt: str, context: Sequence[PriorRound], system_prompt: str | None = None) -> list[ChatMessage]:
    return [
        ChatMessage(role="system", content=build_system_prompt(system_prompt or _DEFAULT_SYSTEM_PROMPT, context)),
        ChatMessage(role="user", content=prompt),
    ]


class ArenaRound:
    """One prompt fanned out to several backends.

    Each backend runs in its own task and writes only its own entry in
    ``responses``. Events from all tasks are merged into one queue; within a
    backend they keep arrival order.

    The queue is unbounded and holds every event until ``events()`` drains
    it. Callers that only ``await wait_all_terminal()`` keep the whole
    round's chunks in memory for the lifetime of the round; read
    ``responses`` and drop the round when done.
    """

    def __init__(
        self,
        prompt: str,
        context: Sequence[PriorRound],
        providers: Sequence[AIProvider],
        system_prompt: str | None = None,
        default_timeout_sec: float = 90.0,
    ) -> None:
        self.prompt = prompt
        self.context = tuple(context)
        self._providers = list(providers)
        self._messages = build_messages(prompt, self.context, system_prompt)
        self._default_timeout_sec = default_timeout_sec
        self.responses: dict[str, BackendResponse] = {
            p.name(): BackendResponse(backend=p.name()) for p in self._providers
        }
        self._queue: asyncio.Queue[RoundEvent] = asyncio.Queue()
        self._tasks: list[asyncio.Task[None]] = []
        self._terminal_count = 0
        self._all_terminal = asyncio.Event()
        self._started_at = 0.0
        self.cancelled = False

    @property
    def backends(self) -> list[str]:
        return list(self.responses)

    @property
    def all_terminal(self) -> bool:
        return self._all_terminal.is_set()

    def start(self) -> None:
        if self._tasks:
            raise RuntimeError("Round already started")
        self._started_at = time.monotonic()
        logger.info("Starting round with %d backends: %s", len(self._providers), ", ".join(self.backends))
        self._tasks = [
            asyncio.create_task(self._run_backend(p), name=f"backend:{p.name()}")
            for p in self._providers
        ]

    def _elapsed(self) -> float:
        return time.monotonic() - self._started_at

    def _mark_terminal(self) -> None:
        self._terminal_count += 1
        if self._terminal_count == len(self.responses):
            self._all_terminal.set()

    async def _consume(self, provider: AIProvider, response: BackendResponse) -> None:
        async with aclosing(provider.stream(self._messages)) as fragments:
            async for fragment in fragments:
                if not fragment:
                    continue
                response.append(fragment, self._elapsed())
                self._queue.put_nowait(
                    RoundEvent(provider.name(), "chunk", {"content": fragment})
                )

    async def _run_backend(self, provider: AIProvider) -> None:
        """Stream one backend to completion. Never raises except on cancellation."""
        name = provider.name()
        response = self.responses[name]
        timeout = provider.timeout_sec() or self._default_timeout_sec
        try:
            await asyncio.wait_for(self._consume(provider, response), timeout=timeout)
        except asyncio.CancelledError:
            self._fail(response, "cancelled")
            raise
        except TimeoutError:
            logger.warning("Backend %s timed out after %ss", name, timeout)
            self._fail(response, f"Timed out after {timeout}s")
        except ProviderError as exc:
            logger.warning("Backend %s failed: %s", name, exc)
            self._fail(response, str(exc))
        except Exception as exc:
            logger.warning("Backend %s unexpected failure: %s", name, exc)
            self._fail(response, f"Unexpected error: {exc}")
        else:
            response.complete(self._elapsed())
            logger.info(
                "Backend %s complete: ttft %.2fs, total %.2fs",
                name,
                response.latency.ttft_sec,
                response.latency.total_sec,
            )
            self._queue.put_nowait(RoundEvent(name, "complete", {
                "ttft_sec": response.latency.ttft_sec,
                "total_sec": response.latency.total_sec,
            }))
            self._mark_terminal()

    def _fail(self, response: BackendResponse, reason: str) -> None:
        if response.status.terminal:
            return
        response.fail(reason, self._elapsed())
        self._queue.put_nowait(RoundEvent(response.backend, "error", {"error": reason}))
        self._mark_terminal()

    async def events(self) -> AsyncIterator[RoundEvent]:
        """Yield events until every backend is terminal.

        Closing the iterator early cancels the round.
        """
        if not self._tasks:
            self.start()
        delivered_terminal = 0
        try:
            while delivered_terminal < len(self.responses):
                event = await self._queue.get()
                if event.event_type != "chunk":
                    delivered_terminal += 1
                yield event
        finally:
            if not self.all_terminal:
                await self.cancel()

    async def wait_all_terminal(self) -> None:
        if not self._tasks:
            self.start()
        await self._all_terminal.wait()

    async def cancel(self) -> None:
        """Cancel open streams and wait for their tasks to unwind."""
        pending = [t for t in self._tasks if not t.done()]
        if not pending:
            return
        self.cancelled = True
        logger.info("Cancelling round: %d backends still open", len(pending))
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        # a task cancelled before its first step never reaches _run_backend's handler
        for response in self.responses.values():
            self._fail(response, "cancelled")

    def completed_contents(self) -> dict[str, str]:
        """Content of backends that completed, in backend order. Errors are excluded."""
        return {
            name: r.content
            for name, r in self.responses.items()
            if r.status is BackendStatus.COMPLETE
        }


def start_round(
    prompt: str,
    context: Sequence[PriorRound],
    backends: Sequence[str],
    providers: dict[str, AIProvider],
    system_prompt: str | None = None,
    default_timeout_sec: float = 90.0,
) -> ArenaRound:
    """Create and start a round for ``backends`` in the given order.

    Raises:
        ValueError: If no backends are given, one is unknown, or one repeats.
    """
    if not backends:
        raise ValueError("At least one backend is required")
    if len(set(backends)) != len(backends):
        raise ValueError(f"Duplicate backends in {list(backends)}")
    unknown = [b for b in backends if b not in providers]
    if unknown:
        raise ValueError(f"Unknown backends: {', '.join(unknown)}")

    arena_round = ArenaRound(
        prompt=prompt,
        context=context,
        providers=[providers[b] for b in backends],
        system_prompt=system_prompt,
        default_timeout_sec=default_timeout_sec,
    )
    arena_round.start()
    return arena_round
