"""Provider health checks: ping each API before starting a round."""

import asyncio
import logging
from contextlib import aclosing

from arena.models import ChatMessage
from arena.providers.base import AIProvider

logger = logging.getLogger(__name__)

_PING_MESSAGES = [ChatMessage(role="user", content="Reply with the word OK only.")]
_TIMEOUT_SEC = 15.0


async def _first_fragment(provider: AIProvider) -> str:
    async with aclosing(provider.stream(_PING_MESSAGES)) as fragments:
        async for fragment in fragments:
            return fragment
    return ""


async def _check_one(name: str, provider: AIProvider) -> tuple[str, bool, str]:
    """Ping a single provider. Returns (name, ok, error_message)."""
    try:
        await asyncio.wait_for(_first_fragment(provider), timeout=_TIMEOUT_SEC)
        return name, True, ""
    except TimeoutError:
        return name, False, f"No response within {_TIMEOUT_SEC:.0f}s"
    except Exception as exc:
        logger.debug("Health check failed for %s", name, exc_info=True)
        return name, False, str(exc)


async def run_health_checks(
    providers: dict[str, AIProvider],
) -> dict[str, tuple[bool, str]]:
    """Ping all providers in parallel.

    Returns:
        Dict mapping provider name -> (ok, error_message).
        error_message is "" when ok is True.
    """
    results = await asyncio.gather(*(_check_one(n, p) for n, p in providers.items()))
    return {name: (ok, err) for name, ok, err in results}
