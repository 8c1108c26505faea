"""Preference updates after a judged round, and per-user summaries."""

import logging
import sqlite3

from arena.intent import classify
from arena.models import CATEGORIES, PreferenceStat, Verdict
from arena.store import PreferenceStore

logger = logging.getLogger(__name__)


def record_outcome(
    store: PreferenceStore,
    user_id: str,
    prompt: str,
    responses: dict[str, str],
    verdict: Verdict,
) -> None:
    """Count one round for every participant and one win for the winner.

    Best-effort: failures are logged and swallowed so a judged round is never
    undone by a storage problem.
    """
    try:
        category = classify(prompt)
        participants = list(dict.fromkeys(responses))
        if verdict.winner not in participants:
            logger.warning(
                "Verdict winner %r is not a participant (%s); preferences not updated",
                verdict.winner,
                ", ".join(participants),
            )
            return

        for backend in participants:
            try:
                store.increment(user_id, category, backend, won=backend == verdict.winner)
            except sqlite3.Error as exc:
                logger.error("Error updating preference stat for %s: %s", backend, exc)

        logger.info(
            "Updated preference stats for user %s: %s round won by %s",
            user_id,
            category,
            verdict.winner,
        )
    except Exception:
        logger.exception("Error updating preferences for user %s", user_id)


def preference_summary(store: PreferenceStore, user_id: str) -> dict[str, list[PreferenceStat]]:
    """Every category with the user's stats, most wins first. Empty lists when unseen."""
    grouped = store.stats_by_category(user_id)
    return {category: grouped.get(category, []) for category in CATEGORIES}
