"""Tests for arena/routing.py."""

import pytest

from arena.intent import classify
from arena.models import PreferenceStat
from arena.routing import decide, default_route, rank_stats, route


@pytest.fixture
def routing_config(app_config):
    return app_config.routing


def test_anonymous_user_gets_default(routing_config, store):
    decision = route(store, None, "code", routing_config)
    assert decision.backend == "gpt"
    assert decision.confidence == 50
    assert decision.category == "code"


def test_no_store_gets_default(routing_config):
    assert route(None, "alice", "writing", routing_config).backend == "claude"


def test_product_launch_email_routes_to_writing_default(routing_config, store):
    category = classify("Write a product launch email")
    decision = route(store, "new-user", category, routing_config)
    assert category == "writing"
    assert decision.backend == "claude"
    assert decision.confidence == 50


def test_unknown_category_falls_back_to_general(routing_config):
    decision = default_route("poetry", routing_config)
    assert decision.backend == routing_config.defaults["general"].backend


def test_strong_preference_scenario(routing_config):
    """gpt 8/10 vs claude 2/5 in code: 80% vs 40% is a gap over 20."""
    stats = [PreferenceStat("claude", 2, 5), PreferenceStat("gpt", 8, 10)]
    decision = decide(stats, "code", routing_config, {"gpt": "GPT-4o"})
    assert decision.backend == "gpt"
    assert decision.confidence == 95
    assert decision.reason == "GPT-4o wins 80% of your code tasks"


def test_route_reads_store(routing_config, store):
    for idx in range(10):
        store.increment("alice", "code", "gpt", won=idx < 8)
    for idx in range(5):
        store.increment("alice", "code", "claude", won=idx < 2)

    decision = route(store, "alice", "code", routing_config)
    assert (decision.backend, decision.confidence) == ("gpt", 95)


def test_mild_gap_boost(routing_config):
    # 60% vs 45%: gap 15 -> +10 on a base of min(5*10, 80)
    stats = [PreferenceStat("gpt", 3, 5), PreferenceStat("claude", 9, 20)]
    decision = decide(stats, "analysis", routing_config)
    assert decision.backend == "gpt"
    assert decision.confidence == 60


def test_small_gap_no_boost(routing_config):
    stats = [PreferenceStat("gpt", 5, 10), PreferenceStat("claude", 9, 20)]
    decision = decide(stats, "analysis", routing_config)
    assert decision.backend == "gpt"
    assert decision.confidence == 80


def test_thin_history_uses_default_with_provisional_confidence(routing_config):
    stats = [PreferenceStat("gemini", 2, 2)]
    decision = decide(stats, "code", routing_config)
    assert decision.backend == "gpt"
    assert decision.confidence == 40
    assert decision.reason.endswith("(building your preference data)")


def test_zero_history_confidence_in_range(routing_config, store):
    for category in ("writing", "code", "research", "analysis", "general"):
        decision = route(store, "nobody", category, routing_config)
        assert 40 <= decision.confidence <= 50


def test_confidence_non_decreasing_with_more_rounds(routing_config):
    previous = 0
    for total in range(3, 20):
        decision = decide([PreferenceStat("gpt", total // 2, total)], "code", routing_config)
        assert decision.confidence >= previous
        previous = decision.confidence


def test_base_confidence_is_capped(routing_config):
    decision = decide([PreferenceStat("gpt", 50, 100)], "code", routing_config)
    assert decision.confidence == 80


def test_reason_rounds_half_up(routing_config):
    # 5/8 = 62.5% -> 63
    decision = decide([PreferenceStat("claude", 5, 8)], "writing", routing_config)
    assert "63%" in decision.reason


def test_rank_prefers_more_rounds_on_equal_rate():
    ranked = rank_stats([PreferenceStat("a", 1, 2), PreferenceStat("b", 5, 10)])
    assert ranked[0].backend == "b"


def test_route_is_read_only(routing_config, store):
    store.increment("alice", "code", "gpt", won=True)
    before = store.stats_for("alice", "code")
    route(store, "alice", "code", routing_config)
    assert store.stats_for("alice", "code") == before
