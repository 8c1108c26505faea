"""Arena pipeline: run a round, judge what completed, record the outcome."""

import asyncio
import logging
import time
from collections.abc import Callable, Sequence
from contextlib import aclosing
from dataclasses import dataclass

from arena.intent import arena_for_category, classify
from arena.judge import JudgeError, JudgeSession
from arena.models import BackendResponse, BackendStatus, JudgeEvent, JudgeResult, RoundEvent, SessionPrompt
from arena.orchestrator import start_round
from arena.preferences import record_outcome
from arena.providers.base import AIProvider
from arena.store import PreferenceStore
from config.config_loader import AppConfig

logger = logging.getLogger(__name__)

EventCallback = Callable[[RoundEvent | JudgeEvent], None]


class NoCompletedResponsesError(RuntimeError):
    """Every backend in the round ended in error; there is nothing to judge."""


@dataclass
class ArenaOutcome:
    session: SessionPrompt
    arena: str
    category: str
    responses: dict[str, BackendResponse]
    judge_name: str
    result: JudgeResult | None = None
    judge_error: str | None = None
    recorded: bool = False
    duration_sec: float = 0.0

    @property
    def completed(self) -> dict[str, str]:
        return {
            name: r.content for name, r in self.responses.items() if r.status is BackendStatus.COMPLETE
        }


async def run_arena(
    session: SessionPrompt,
    backends: Sequence[str],
    providers: dict[str, AIProvider],
    judge_provider: AIProvider,
    config: AppConfig,
    store: PreferenceStore | None = None,
    user_id: str | None = None,
    arena: str | None = None,
    on_event: EventCallback | None = None,
) -> ArenaOutcome:
    """Run one judged round for ``session``.

    Raises:
        ValueError: Bad backend list, unknown arena, or a judge without tools.
        NoCompletedResponsesError: If no backend completed.
    """
    start = time.monotonic()
    category = classify(session.text)
    arena = arena or arena_for_category(category)
    if arena not in config.judge.arenas:
        raise ValueError(f"Unknown arena: {arena}")

    judge = JudgeSession(
        judge_provider,
        config.judge,
        display_names={name: config.display_name(name) for name in backends},
    )

    arena_round = start_round(
        session.text,
        session.context,
        backends,
        providers,
        system_prompt=config.prompts.arena.get(arena),
        default_timeout_sec=config.defaults.stream_timeout_sec,
    )
    async with aclosing(arena_round.events()) as events:
        async for event in events:
            if on_event:
                on_event(event)

    outcome = ArenaOutcome(
        session=session,
        arena=arena,
        category=category,
        responses=arena_round.responses,
        judge_name=judge_provider.name(),
    )
    completed = arena_round.completed_contents()
    if not completed:
        raise NoCompletedResponsesError(
            f"No backend completed: {', '.join(f'{n} ({r.error})' for n, r in arena_round.responses.items())}"
        )

    try:
        async with aclosing(judge.judge(session.text, completed, category, arena)) as judge_events:
            async for event in judge_events:
                if on_event:
                    on_event(event)
    except JudgeError as exc:
        logger.warning("Judging failed: %s", exc)
        outcome.judge_error = str(exc)

    outcome.result = judge.result
    if outcome.result is not None and user_id and store is not None:
        await asyncio.to_thread(
            record_outcome, store, user_id, session.text, completed, outcome.result.verdict
        )
        outcome.recorded = True

    outcome.duration_sec = time.monotonic() - start
    return outcome
