"""Quick mode: classify, route, and stream a single backend's answer."""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import aclosing

from arena.intent import category_label, classify
from arena.models import QuickEvent, RoutingDecision
from arena.orchestrator import ArenaRound
from arena.providers.base import AIProvider
from arena.routing import route
from arena.store import PreferenceStore
from config.config_loader import AppConfig

logger = logging.getLogger(__name__)


async def run_quick(
    prompt: str,
    user_id: str | None,
    providers: dict[str, AIProvider],
    store: PreferenceStore | None,
    config: AppConfig,
) -> AsyncIterator[QuickEvent]:
    """Answer ``prompt`` with the backend routing recommends.

    Yields one ``routing`` event, then ``content`` fragments, then ``done``
    (full text and latency) or ``error``.
    """
    if not providers:
        yield QuickEvent("error", {"error": "No providers available"})
        return

    category = classify(prompt)
    display_names = {name: config.display_name(name) for name in config.models}
    decision = await asyncio.to_thread(route, store, user_id, category, config.routing, display_names)

    if decision.backend not in providers:
        fallback = next(iter(providers))
        logger.warning("Routed backend %s is not available, using %s", decision.backend, fallback)
        decision = RoutingDecision(
            backend=fallback,
            reason=f"{decision.reason} ({config.display_name(decision.backend)} unavailable)",
            confidence=decision.confidence,
            category=category,
        )

    yield QuickEvent("routing", {
        "backend": decision.backend,
        "display_name": config.display_name(decision.backend),
        "reason": decision.reason,
        "confidence": decision.confidence,
        "category": category,
        "category_label": category_label(category),
    })

    arena_round = ArenaRound(
        prompt=prompt,
        context=(),
        providers=[providers[decision.backend]],
        system_prompt=config.prompts.quick.get(category) or config.prompts.quick.get("general"),
        default_timeout_sec=config.defaults.stream_timeout_sec,
    )
    response = arena_round.responses[decision.backend]
    async with aclosing(arena_round.events()) as events:
        async for event in events:
            if event.event_type == "chunk":
                yield QuickEvent("content", {"content": event.payload["content"]})
            elif event.event_type == "complete":
                yield QuickEvent("done", {
                    "backend": decision.backend,
                    "content": response.content,
                    "ttft_sec": response.latency.ttft_sec,
                    "total_sec": response.latency.total_sec,
                })
            else:
                yield QuickEvent("error", {"backend": decision.backend, "error": event.payload["error"]})
