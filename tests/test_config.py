"""Tests for config/config_loader.py."""

from pathlib import Path

import pytest
import yaml

from config.config_loader import AppConfig, ModelConfig, PromptsConfig, load_config


@pytest.fixture
def minimal_settings(tmp_path: Path) -> Path:
    """Write a minimal valid settings.yaml to a temp path."""
    settings = {
        "defaults": {
            "arena_panel": ["claude", "gpt"],
            "judge": "claude",
            "output_dir": "./output",
            "db_path": "./data/preferences.db",
        },
        "models": {
            "claude": {
                "sdk": "anthropic",
                "model": "claude-sonnet-4-20250514",
                "display_name": "Claude",
                "api_key_env": "TEST_CLAUDE_KEY",
                "timeout_sec": 120,
                "max_tokens": 4096,
            },
            "gpt": {
                "sdk": "openai",
                "model": "gpt-4o",
                "api_key_env": "TEST_OPENAI_KEY",
                "timeout_sec": 60,
                "max_tokens": 2048,
            },
        },
        "routing": {
            "min_history": 5,
            "defaults": {
                "general": {"backend": "claude", "reason": "Default model"},
            },
        },
        "judge": {
            "arenas": {
                "debate": {
                    "name": "The Arbiter",
                    "system_prompt": "Judge fairly.\n",
                    "criteria": [
                        {"id": "reasoning", "name": "Reasoning", "description": "Logic"},
                    ],
                },
            },
        },
        "prompts": {
            "arena": {"debate": "Argue well.\n"},
            "quick": {"general": "Be helpful."},
        },
    }
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.dump(settings), encoding="utf-8")
    return path


def test_load_config_returns_app_config(minimal_settings):
    config = load_config(minimal_settings)
    assert isinstance(config, AppConfig)


def test_load_config_defaults(minimal_settings):
    config = load_config(minimal_settings)
    assert config.defaults.arena_panel == ["claude", "gpt"]
    assert config.defaults.judge == "claude"
    assert config.defaults.stream_timeout_sec == 90.0
    assert isinstance(config.defaults.output_dir, Path)
    assert isinstance(config.defaults.db_path, Path)


def test_load_config_models(minimal_settings):
    config = load_config(minimal_settings)
    assert isinstance(config.models["claude"], ModelConfig)
    assert config.models["gpt"].model == "gpt-4o"
    assert config.models["claude"].base_url is None


def test_display_name_falls_back_to_id(minimal_settings):
    config = load_config(minimal_settings)
    assert config.display_name("claude") == "Claude"
    assert config.display_name("gpt") == "gpt"
    assert config.display_name("unknown") == "unknown"


def test_load_config_prompts_are_stripped(minimal_settings):
    config = load_config(minimal_settings)
    assert isinstance(config.prompts, PromptsConfig)
    assert config.prompts.arena["debate"] == "Argue well."
    assert config.prompts.quick["general"] == "Be helpful."


def test_routing_overrides_and_defaults(minimal_settings):
    routing = load_config(minimal_settings).routing
    assert routing.min_history == 5
    assert routing.default_confidence == 50
    assert routing.defaults["general"].backend == "claude"


def test_judge_rubric(minimal_settings):
    judge = load_config(minimal_settings).judge
    assert judge.max_turns == 12
    debate = judge.arenas["debate"]
    assert debate.name == "The Arbiter"
    assert debate.system_prompt == "Judge fairly."
    assert [c.id for c in debate.criteria] == ["reasoning"]


def test_load_config_available_providers_with_key(minimal_settings, monkeypatch):
    monkeypatch.setenv("TEST_CLAUDE_KEY", "sk-test-key")
    monkeypatch.delenv("TEST_OPENAI_KEY", raising=False)
    config = load_config(minimal_settings)
    assert config.available_providers == {"claude"}


def test_load_config_no_available_providers_without_key(minimal_settings, monkeypatch):
    monkeypatch.delenv("TEST_CLAUDE_KEY", raising=False)
    monkeypatch.delenv("TEST_OPENAI_KEY", raising=False)
    config = load_config(minimal_settings)
    assert config.available_providers == set()


def test_load_config_missing_file():
    with pytest.raises(FileNotFoundError):
        load_config(Path("/nonexistent/settings.yaml"))


def test_shipped_settings_are_complete():
    config = load_config()
    assert set(config.judge.arenas) == {"debate", "code", "writing"}
    assert set(config.routing.defaults) == {"writing", "code", "research", "analysis", "general"}
    assert set(config.prompts.quick) == set(config.routing.defaults)
    for backend in config.defaults.arena_panel:
        assert backend in config.models
    assert config.models["grok"].base_url
