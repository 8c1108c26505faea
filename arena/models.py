"""Dataclasses for the arena pipeline: rounds, responses, scores, verdicts, routing."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

Category = Literal["writing", "code", "research", "analysis", "general"]
ArenaKind = Literal["debate", "code", "writing"]

CATEGORIES: tuple[str, ...] = ("writing", "code", "research", "analysis", "general")
ARENA_KINDS: tuple[str, ...] = ("debate", "code", "writing")


@dataclass
class ChatMessage:
    role: str              # "system", "user", "assistant", "tool"
    content: str | None
    tool_calls: list["ToolCall"] = field(default_factory=list)
    tool_call_id: str | None = None


@dataclass(frozen=True)
class PriorRound:
    prompt: str
    responses: dict[str, str]


@dataclass(frozen=True)
class SessionPrompt:
    text: str
    context: tuple[PriorRound, ...] = ()

    def next_round(self, text: str, responses: dict[str, str]) -> "SessionPrompt":
        """Supersede this prompt with a new one carrying this round as context."""
        return SessionPrompt(
            text=text,
            context=self.context + (PriorRound(prompt=self.text, responses=dict(responses)),),
        )


class BackendStatus(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def terminal(self) -> bool:
        return self in (BackendStatus.COMPLETE, BackendStatus.ERROR)


_ALLOWED_TRANSITIONS: dict[BackendStatus, set[BackendStatus]] = {
    BackendStatus.IDLE: {BackendStatus.STREAMING, BackendStatus.ERROR},
    BackendStatus.STREAMING: {BackendStatus.COMPLETE, BackendStatus.ERROR},
    BackendStatus.COMPLETE: set(),
    BackendStatus.ERROR: set(),
}


class StatusTransitionError(ValueError):
    """Raised when a backend response would move backwards in its lifecycle."""


@dataclass
class Latency:
    ttft_sec: float = 0.0
    total_sec: float = 0.0


@dataclass
class BackendResponse:
    backend: str
    content: str = ""
    status: BackendStatus = BackendStatus.IDLE
    latency: Latency = field(default_factory=Latency)
    error: str | None = None
    history: list[BackendStatus] = field(default_factory=lambda: [BackendStatus.IDLE])

    def _move(self, target: BackendStatus) -> None:
        if target not in _ALLOWED_TRANSITIONS[self.status]:
            raise StatusTransitionError(
                f"{self.backend}: cannot move from {self.status.value} to {target.value}"
            )
        self.status = target
        self.history.append(target)

    def append(self, fragment: str, elapsed_sec: float) -> None:
        if self.status is BackendStatus.IDLE:
            self._move(BackendStatus.STREAMING)
            self.latency.ttft_sec = elapsed_sec
        elif self.status is not BackendStatus.STREAMING:
            raise StatusTransitionError(f"{self.backend}: cannot append in state {self.status.value}")
        self.content += fragment
        self.latency.total_sec = elapsed_sec

    def complete(self, elapsed_sec: float) -> None:
        if self.status is BackendStatus.IDLE:
            # A stream that ends without any content still went through streaming.
            self._move(BackendStatus.STREAMING)
            self.latency.ttft_sec = elapsed_sec
        self._move(BackendStatus.COMPLETE)
        self.latency.total_sec = elapsed_sec

    def fail(self, error: str, elapsed_sec: float) -> None:
        self._move(BackendStatus.ERROR)
        self.error = error
        self.latency.total_sec = elapsed_sec


@dataclass(frozen=True)
class RoundEvent:
    backend_id: str
    event_type: Literal["chunk", "complete", "error"]
    payload: dict[str, Any]


@dataclass
class ToolCall:
    id: str
    name: str
    arguments: str          # raw JSON text as sent by the judge


@dataclass(frozen=True)
class ScoreEntry:
    backend: str
    criterion: str
    score: float
    rationale: str
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Verdict:
    winner: str
    verdict: str
    highlight: str


@dataclass
class ModelAnalysis:
    backend: str
    analysis: str
    strongest_moment: str
    weakness: str
    scores: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class HighlightedPassage:
    backend: str
    quote: str
    comment: str


@dataclass
class JudgeResult:
    arena: str
    scores: dict[str, dict[str, ScoreEntry]]
    verdict: Verdict
    opening_remarks: str = ""
    analyses: list[ModelAnalysis] = field(default_factory=list)
    head_to_head: str = ""
    passages: list[HighlightedPassage] = field(default_factory=list)

    def totals(self) -> dict[str, float]:
        """Sum of criterion scores per backend."""
        return {
            backend: sum(entry.score for entry in by_criterion.values())
            for backend, by_criterion in self.scores.items()
        }


@dataclass(frozen=True)
class JudgeEvent:
    event_type: Literal["tool_call", "scoring", "verdict", "complete"]
    payload: dict[str, Any]


@dataclass(frozen=True)
class PreferenceStat:
    backend: str
    wins: int
    total: int

    @property
    def win_rate(self) -> float:
        """Win percentage in [0, 100]."""
        return (self.wins / self.total) * 100 if self.total > 0 else 0.0


@dataclass(frozen=True)
class RoutingDecision:
    backend: str
    reason: str
    confidence: int
    category: str


@dataclass(frozen=True)
class QuickEvent:
    event_type: Literal["routing", "content", "done", "error"]
    payload: dict[str, Any]
