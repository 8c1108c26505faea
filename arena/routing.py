"""Routing: pick the backend most likely to win a category for a user."""

import logging
import math

from arena.models import PreferenceStat, RoutingDecision
from arena.store import PreferenceStore
from config.config_loader import RoutingConfig

logger = logging.getLogger(__name__)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def default_route(category: str, config: RoutingConfig) -> RoutingDecision:
    default = config.defaults.get(category) or config.defaults["general"]
    return RoutingDecision(
        backend=default.backend,
        reason=default.reason,
        confidence=config.default_confidence,
        category=category,
    )


def rank_stats(stats: list[PreferenceStat]) -> list[PreferenceStat]:
    """Highest win-rate first, more recorded rounds breaking ties."""
    return sorted(stats, key=lambda s: (s.win_rate, s.total), reverse=True)


def decide(
    stats: list[PreferenceStat],
    category: str,
    config: RoutingConfig,
    display_names: dict[str, str] | None = None,
) -> RoutingDecision:
    """Turn one user's stats for a category into a routing decision."""
    if not stats:
        return default_route(category, config)

    ranked = rank_stats(stats)
    best = ranked[0]

    if best.total < config.min_history:
        fallback = default_route(category, config)
        return RoutingDecision(
            backend=fallback.backend,
            reason=f"{fallback.reason} (building your preference data)",
            confidence=config.provisional_confidence,
            category=category,
        )

    confidence = min(best.total * config.per_round_confidence, config.base_confidence_cap)
    if len(ranked) > 1:
        gap = best.win_rate - ranked[1].win_rate
        if gap > config.strong_gap:
            confidence = min(confidence + config.strong_boost, config.strong_cap)
        elif gap > config.mild_gap:
            confidence = min(confidence + config.mild_boost, config.mild_cap)

    name = (display_names or {}).get(best.backend, best.backend)
    return RoutingDecision(
        backend=best.backend,
        reason=f"{name} wins {_round_half_up(best.win_rate)}% of your {category} tasks",
        confidence=confidence,
        category=category,
    )


def route(
    store: PreferenceStore | None,
    user_id: str | None,
    category: str,
    config: RoutingConfig,
    display_names: dict[str, str] | None = None,
) -> RoutingDecision:
    """Recommend a backend for ``category``. Read-only against the store.

    Anonymous users and users without history get the configured default.
    """
    if not user_id or store is None:
        return default_route(category, config)
    stats = store.stats_for(user_id, category)
    decision = decide(stats, category, config, display_names)
    logger.debug("Routing %s/%s -> %s (%d)", user_id, category, decision.backend, decision.confidence)
    return decision
