"""Tests for arena/output.py."""

from pathlib import Path

import pytest

from arena.models import (
    BackendResponse,
    HighlightedPassage,
    JudgeResult,
    PreferenceStat,
    RoutingDecision,
    ScoreEntry,
    SessionPrompt,
    Verdict,
)
from arena.output import _slug, print_judge_result, print_preferences, print_round_summary, print_routing, save_to_file
from arena.pipeline import ArenaOutcome


def test_slug_basic():
    assert _slug("Should we use YAML or JSON?") == "should-we-use-yaml-or-json"


def test_slug_max_len():
    long_text = "a" * 100
    assert len(_slug(long_text)) <= 40


def test_slug_special_chars():
    result = _slug("API vs. SDK (2024)")
    assert "." not in result
    assert "(" not in result
    assert ")" not in result


def _responses() -> dict[str, BackendResponse]:
    claude = BackendResponse(backend="claude")
    claude.append("Launch day is here.", 0.4)
    claude.complete(1.2)
    gpt = BackendResponse(backend="gpt")
    gpt.fail("[gpt] 429 rate limited", 0.3)
    return {"claude": claude, "gpt": gpt}


def _result() -> JudgeResult:
    return JudgeResult(
        arena="writing",
        scores={"claude": {"creativity": ScoreEntry("claude", "creativity", 8, "fresh hook")}},
        verdict=Verdict(winner="claude", verdict="Claude by default.", highlight="Walkover."),
        opening_remarks="Only one contender showed up.",
    )


@pytest.fixture
def sample_outcome() -> ArenaOutcome:
    return ArenaOutcome(
        session=SessionPrompt("Write a product launch email"),
        arena="writing",
        category="writing",
        responses=_responses(),
        judge_name="claude",
        result=_result(),
        duration_sec=4.2,
    )


def test_save_to_file_creates_file(tmp_path: Path, sample_outcome: ArenaOutcome):
    saved = save_to_file([sample_outcome], tmp_path / "output")
    assert saved.exists()
    assert saved.suffix == ".md"
    assert saved.stem.endswith("write-a-product-launch-email")


def test_save_to_file_creates_output_dir(tmp_path: Path, sample_outcome: ArenaOutcome):
    output_dir = tmp_path / "nested" / "output"
    assert not output_dir.exists()
    save_to_file([sample_outcome], output_dir)
    assert output_dir.exists()


def test_save_to_file_content(tmp_path: Path, sample_outcome: ArenaOutcome):
    saved = save_to_file([sample_outcome], tmp_path, {"claude": "Claude", "gpt": "GPT-4o"})
    content = saved.read_text(encoding="utf-8")
    assert "# Model Arena: Write a product launch email" in content
    assert "## Round 1" in content
    assert "Launch day is here." in content
    assert "*Error: [gpt] 429 rate limited*" in content
    assert "| Claude | 8 | 8 |" in content
    assert "### Verdict: Claude wins" in content
    assert "> Walkover." in content


def test_save_to_file_without_verdict(tmp_path: Path, sample_outcome: ArenaOutcome):
    sample_outcome.result = None
    sample_outcome.judge_error = "Judge stream ended without a verdict"
    content = save_to_file([sample_outcome], tmp_path).read_text(encoding="utf-8")
    assert "No verdict: Judge stream ended without a verdict" in content


def test_save_to_file_slug_override(tmp_path: Path, sample_outcome: ArenaOutcome):
    saved = save_to_file([sample_outcome], tmp_path, slug_override="launch")
    assert saved.stem.endswith("_launch")


def test_save_to_file_requires_outcomes(tmp_path: Path):
    with pytest.raises(ValueError):
        save_to_file([], tmp_path)


def test_console_rendering(capsys, sample_outcome: ArenaOutcome):
    names = {"claude": "Claude", "gpt": "GPT-4o"}
    print_round_summary(1, sample_outcome.responses, names)
    print_judge_result(sample_outcome.result, "The Editor", names)
    print_routing(RoutingDecision("claude", "Claude excels at writing", 50, "writing"), "Claude")
    print_preferences({"writing": [PreferenceStat("claude", 3, 4)], "code": []}, names)

    out = capsys.readouterr().out
    assert "Round 1 Summary" in out
    assert "Winner: Claude" in out
    assert "50% confidence" in out
    assert "75%" in out
    assert "no data yet" in out


def test_highlighted_passages_rendered(tmp_path: Path, capsys, sample_outcome: ArenaOutcome):
    sample_outcome.result.passages = [HighlightedPassage("claude", "Launch day is here.", "strong hook")]
    names = {"claude": "Claude"}

    content = save_to_file([sample_outcome], tmp_path, names).read_text(encoding="utf-8")
    assert "### Highlighted Passages" in content
    assert '- **Claude:** "Launch day is here." (strong hook)' in content

    print_judge_result(sample_outcome.result, "The Editor", names)
    out = capsys.readouterr().out
    assert "Launch day is here." in out
    assert "strong hook" in out
