"""Judge engine: tool-call scoring protocol against one judging backend.

The judge is given the arena's fixed tool schema and the completed
responses. It calls ``score_<criterion>`` once per (model, criterion), may
write narrative pieces, and finishes with exactly one ``generate_verdict``.
Every tool call is streamed to the caller as it arrives.

State machine::

    not_started -> judging -> complete
                          \\-> invalid  (verdict named a non-participant)
                          \\-> failed   (no verdict, judge error, stream closed early)

A failed session may be retried. A judging, complete or invalid one may not:
a round shows at most one verdict.
"""

import json
import logging
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import aclosing
from dataclasses import asdict
from enum import Enum
from typing import Any

from arena.judge_tools import (
    ANALYSIS_TOOL,
    HEAD_TO_HEAD_TOOL,
    OPENING_TOOL,
    PASSAGES_TOOL,
    SCORE_PREFIX,
    VERDICT_TOOL,
    build_judge_prompt,
    build_tools,
)
from arena.models import (
    ChatMessage,
    HighlightedPassage,
    JudgeEvent,
    JudgeResult,
    ModelAnalysis,
    ScoreEntry,
    ToolCall,
    Verdict,
)
from arena.providers.base import AIProvider, ProviderError
from config.config_loader import JudgeConfig

logger = logging.getLogger(__name__)


class JudgeState(str, Enum):
    NOT_STARTED = "not_started"
    JUDGING = "judging"
    COMPLETE = "complete"
    INVALID = "invalid"
    FAILED = "failed"


class JudgeError(Exception):
    """Base for judging failures."""


class NoVerdictError(JudgeError):
    """The judge stream ended (or broke) without a usable verdict call."""


class JudgeBusyError(JudgeError):
    """A judging pass is already running or has already produced a verdict."""


class InvalidWinnerError(JudgeError):
    """The verdict named a winner that did not take part in the round."""

    def __init__(self, verdict: Verdict, participants: list[str]) -> None:
        self.verdict = verdict
        self.participants = participants
        super().__init__(
            f"Verdict winner {verdict.winner!r} is not one of: {', '.join(participants)}"
        )


def resolve_backend(name: str, participants: list[str], display_names: dict[str, str]) -> str | None:
    """Map a judge-supplied model name to a participating backend id.

    Exact id first, then case-insensitive id or display name.
    """
    if name in participants:
        return name
    wanted = name.strip().casefold()
    for backend in participants:
        if backend.casefold() == wanted:
            return backend
        if display_names.get(backend, "").casefold() == wanted:
            return backend
    return None


class _JudgeStream:
    """Event stream of one judging pass.

    Closing it ends the pass even when it was never iterated, so an
    abandoned pass leaves the session retryable instead of stuck judging.
    """

    def __init__(self, session: "JudgeSession", events: AsyncGenerator[JudgeEvent, None]) -> None:
        self._session = session
        self._events = events

    def __aiter__(self) -> "_JudgeStream":
        return self

    async def __anext__(self) -> JudgeEvent:
        return await self._events.__anext__()

    async def aclose(self) -> None:
        try:
            await self._events.aclose()
        finally:
            self._session._release()


class JudgeSession:
    """Judging for a single round. At most one verdict per session."""

    def __init__(
        self,
        provider: AIProvider,
        config: JudgeConfig,
        display_names: dict[str, str] | None = None,
    ) -> None:
        if not provider.supports_tools():
            raise ValueError(f"Judge backend {provider.name()} does not support tool calls")
        self._provider = provider
        self._config = config
        self._display_names = display_names or {}
        self.state = JudgeState.NOT_STARTED
        self.scores: dict[str, dict[str, ScoreEntry]] = {}
        self.verdict: Verdict | None = None
        self.result: JudgeResult | None = None
        self._opening = ""
        self._analyses: list[ModelAnalysis] = []
        self._head_to_head = ""
        self._passages: list[HighlightedPassage] = []

    def judge(
        self,
        prompt: str,
        responses: dict[str, str],
        category: str,
        arena: str,
    ) -> AsyncIterator[JudgeEvent]:
        """Start judging and return the event stream.

        Raises:
            JudgeBusyError: If this session is judging or has already shown
                a verdict, valid or not.
            ValueError: If there is nothing to judge or the arena is unknown.
        """
        if self.state in (JudgeState.JUDGING, JudgeState.COMPLETE, JudgeState.INVALID):
            raise JudgeBusyError(f"Judge session is already {self.state.value}")
        if not responses:
            raise ValueError("No completed responses to judge")
        if arena not in self._config.arenas:
            raise ValueError(f"Unknown arena: {arena}")

        self.state = JudgeState.JUDGING
        self.scores = {}
        self.verdict = None
        self.result = None
        self._opening = ""
        self._analyses = []
        self._head_to_head = ""
        self._passages = []
        return _JudgeStream(self, self._run(prompt, dict(responses), category, arena))

    def _release(self) -> None:
        if self.state is JudgeState.JUDGING:
            logger.info("Judging pass closed before a verdict")
            self.state = JudgeState.FAILED

    async def _run(
        self,
        prompt: str,
        responses: dict[str, str],
        category: str,
        arena: str,
    ) -> AsyncIterator[JudgeEvent]:
        rubric = self._config.arenas[arena]
        tools = build_tools(arena, rubric)
        participants = list(responses)
        messages = [
            ChatMessage(role="system", content=rubric.system_prompt),
            ChatMessage(role="user", content=build_judge_prompt(prompt, responses, category, rubric)),
        ]
        logger.info("Judging %d responses via %s (%s arena)", len(participants), self._provider.name(), arena)

        try:
            for turn in range(1, self._config.max_turns + 1):
                calls: list[ToolCall] = []
                results: list[dict[str, Any]] = []
                try:
                    async with aclosing(self._provider.stream_tool_calls(messages, tools)) as stream:
                        async for call in stream:
                            calls.append(call)
                            args = self._parse_arguments(call)
                            if args is None:
                                results.append({"success": False, "error": "arguments were not valid JSON"})
                                continue
                            results.append({"success": True, "recorded": args})

                            yield JudgeEvent("tool_call", {"tool": call.name, "input": args})

                            if call.name.startswith(SCORE_PREFIX):
                                entry = self._record_score(call.name[len(SCORE_PREFIX):], args, participants)
                                if entry is not None:
                                    yield JudgeEvent("scoring", {
                                        "model": entry.backend,
                                        "category": entry.criterion,
                                        "score": entry.score,
                                        "rationale": entry.rationale,
                                    })
                            elif call.name == OPENING_TOOL:
                                self._opening = str(args.get("remarks", ""))
                            elif call.name == ANALYSIS_TOOL:
                                self._record_analysis(args, participants)
                            elif call.name == HEAD_TO_HEAD_TOOL:
                                self._head_to_head = str(args.get("comparison", ""))
                            elif call.name == PASSAGES_TOOL:
                                self._record_passages(args, participants)
                            elif call.name == VERDICT_TOOL:
                                verdict = self._build_verdict(args)
                                if verdict is None:
                                    results[-1] = {"success": False, "error": "winner and verdict are required"}
                                    continue
                                async for event in self._finish(verdict, participants, arena):
                                    yield event
                                return
                except ProviderError as exc:
                    logger.warning("Judge stream failed on turn %d: %s", turn, exc)
                    raise NoVerdictError(f"Judge stream failed: {exc}") from exc

                if not calls:
                    break
                messages.append(ChatMessage(role="assistant", content=None, tool_calls=calls))
                for call, result in zip(calls, results):
                    messages.append(ChatMessage(role="tool", content=json.dumps(result), tool_call_id=call.id))

            logger.warning(
                "Judge finished without a verdict (%d models scored)", len(self.scores)
            )
            raise NoVerdictError("Judge stream ended without a verdict")
        finally:
            if self.state is JudgeState.JUDGING:
                self.state = JudgeState.FAILED

    async def _finish(self, verdict: Verdict, participants: list[str], arena: str) -> AsyncIterator[JudgeEvent]:
        winner = resolve_backend(verdict.winner, participants, self._display_names)
        if winner is None:
            logger.error(
                "Data integrity: verdict winner %r is not a participant (%s)",
                verdict.winner,
                ", ".join(participants),
            )
            self.state = JudgeState.INVALID
            yield JudgeEvent("verdict", {**asdict(verdict), "valid": False})
            raise InvalidWinnerError(verdict, participants)

        verdict = Verdict(winner=winner, verdict=verdict.verdict, highlight=verdict.highlight)
        self.verdict = verdict
        self.result = JudgeResult(
            arena=arena,
            scores=self.scores,
            verdict=verdict,
            opening_remarks=self._opening,
            analyses=self._analyses,
            head_to_head=self._head_to_head,
            passages=self._passages,
        )
        self.state = JudgeState.COMPLETE
        logger.info("Verdict: %s wins", winner)
        yield JudgeEvent("verdict", {**asdict(verdict), "valid": True})
        yield JudgeEvent("complete", {
            "scores": {
                backend: {criterion: asdict(entry) for criterion, entry in by_criterion.items()}
                for backend, by_criterion in self.scores.items()
            },
            "verdict": asdict(verdict),
        })

    @staticmethod
    def _parse_arguments(call: ToolCall) -> dict[str, Any] | None:
        try:
            args = json.loads(call.arguments or "{}")
        except json.JSONDecodeError:
            logger.warning("Failed to parse arguments for %s: %r", call.name, call.arguments)
            return None
        if not isinstance(args, dict):
            logger.warning("Arguments for %s are not an object: %r", call.name, call.arguments)
            return None
        return args

    def _record_score(self, criterion: str, args: dict[str, Any], participants: list[str]) -> ScoreEntry | None:
        backend = resolve_backend(str(args.get("model", "")), participants, self._display_names)
        if backend is None:
            logger.warning("Score for unknown model %r ignored", args.get("model"))
            return None
        try:
            score = float(args["score"])
        except (KeyError, TypeError, ValueError):
            logger.warning("Score for %s/%s has no numeric score: %r", backend, criterion, args.get("score"))
            return None

        details = {k: v for k, v in args.items() if k not in ("model", "score", "rationale")}
        entry = ScoreEntry(
            backend=backend,
            criterion=criterion,
            score=score,
            rationale=str(args.get("rationale", "")),
            details=details,
        )
        self.scores.setdefault(backend, {})[criterion] = entry
        return entry

    def _record_analysis(self, args: dict[str, Any], participants: list[str]) -> None:
        backend = resolve_backend(str(args.get("model", "")), participants, self._display_names)
        if backend is None:
            logger.warning("Analysis for unknown model %r ignored", args.get("model"))
            return
        self._analyses.append(ModelAnalysis(
            backend=backend,
            analysis=str(args.get("analysis", "")),
            strongest_moment=str(args.get("strongest_moment") or args.get("strongestMoment") or ""),
            weakness=str(args.get("weakness", "")),
            scores={c: e.score for c, e in self.scores.get(backend, {}).items()},
        ))

    def _record_passages(self, args: dict[str, Any], participants: list[str]) -> None:
        backend = resolve_backend(str(args.get("model", "")), participants, self._display_names)
        if backend is None:
            logger.warning("Passages for unknown model %r ignored", args.get("model"))
            return
        passages = args.get("passages")
        if not isinstance(passages, list):
            logger.warning("Passages for %s are not a list: %r", backend, passages)
            return
        for item in passages:
            if not isinstance(item, dict) or not item.get("quote"):
                continue
            self._passages.append(HighlightedPassage(
                backend=backend,
                quote=str(item["quote"]),
                comment=str(item.get("comment", "")),
            ))

    @staticmethod
    def _build_verdict(args: dict[str, Any]) -> Verdict | None:
        winner = args.get("winner")
        verdict_text = args.get("verdict")
        if not isinstance(winner, str) or not winner.strip() or not isinstance(verdict_text, str):
            logger.warning("Malformed verdict payload: %r", args)
            return None
        highlight = args.get("quotable_line") or args.get("highlight") or ""
        return Verdict(winner=winner.strip(), verdict=verdict_text, highlight=str(highlight))
