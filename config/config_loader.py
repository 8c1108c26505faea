"""Load settings.yaml into typed dataclasses. Validates API keys at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


@dataclass
class ModelConfig:
    name: str
    sdk: str
    model: str
    api_key_env: str
    timeout_sec: int
    max_tokens: int
    display_name: str = ""
    base_url: str | None = None

    def __post_init__(self) -> None:
        if not self.display_name:
            self.display_name = self.name


@dataclass
class CriterionConfig:
    id: str
    name: str
    description: str


@dataclass
class ArenaJudgeConfig:
    name: str
    system_prompt: str
    criteria: list[CriterionConfig] = field(default_factory=list)
    title: str = ""


@dataclass
class JudgeConfig:
    max_turns: int
    arenas: dict[str, ArenaJudgeConfig] = field(default_factory=dict)


@dataclass
class DefaultRoute:
    backend: str
    reason: str


@dataclass
class RoutingConfig:
    """Routing thresholds. Product-tuned constants, not statistical truths."""

    defaults: dict[str, DefaultRoute] = field(default_factory=dict)
    min_history: int = 3
    default_confidence: int = 50
    provisional_confidence: int = 40
    per_round_confidence: int = 10
    base_confidence_cap: int = 80
    strong_gap: float = 20
    strong_boost: int = 15
    strong_cap: int = 95
    mild_gap: float = 10
    mild_boost: int = 10
    mild_cap: int = 90


@dataclass
class PromptsConfig:
    arena: dict[str, str] = field(default_factory=dict)
    quick: dict[str, str] = field(default_factory=dict)


@dataclass
class DefaultsConfig:
    judge: str
    output_dir: Path
    db_path: Path
    stream_timeout_sec: float = 90.0
    arena_panel: list[str] = field(default_factory=list)


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    models: dict[str, ModelConfig]
    prompts: PromptsConfig
    routing: RoutingConfig
    judge: JudgeConfig
    available_providers: set[str] = field(default_factory=set)

    def display_name(self, backend: str) -> str:
        model_cfg = self.models.get(backend)
        return model_cfg.display_name if model_cfg else backend


def _load_routing(raw: dict) -> RoutingConfig:
    defaults = {
        category: DefaultRoute(backend=str(entry["backend"]), reason=str(entry["reason"]))
        for category, entry in raw.get("defaults", {}).items()
    }
    known = set(RoutingConfig.__dataclass_fields__) - {"defaults"}
    overrides = {k: v for k, v in raw.items() if k in known}
    return RoutingConfig(defaults=defaults, **overrides)


def _load_judge(raw: dict) -> JudgeConfig:
    arenas: dict[str, ArenaJudgeConfig] = {}
    for arena_name, arena_raw in raw["arenas"].items():
        arenas[arena_name] = ArenaJudgeConfig(
            name=arena_raw["name"],
            title=arena_raw.get("title", ""),
            system_prompt=arena_raw["system_prompt"].strip(),
            criteria=[
                CriterionConfig(id=c["id"], name=c["name"], description=c["description"])
                for c in arena_raw["criteria"]
            ],
        )
    return JudgeConfig(max_turns=int(raw.get("max_turns", 12)), arenas=arenas)


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing.
    Logs missing API keys but does not raise; callers check
    available_providers count.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw["defaults"]
    defaults = DefaultsConfig(
        judge=str(defaults_raw["judge"]),
        output_dir=Path(defaults_raw["output_dir"]),
        db_path=Path(defaults_raw["db_path"]),
        stream_timeout_sec=float(defaults_raw.get("stream_timeout_sec", 90)),
        arena_panel=list(defaults_raw["arena_panel"]),
    )

    prompts_raw = raw.get("prompts", {})
    prompts = PromptsConfig(
        arena={k: str(v).strip() for k, v in prompts_raw.get("arena", {}).items()},
        quick={k: str(v).strip() for k, v in prompts_raw.get("quick", {}).items()},
    )

    models: dict[str, ModelConfig] = {}
    available_providers: set[str] = set()

    for provider_name, model_raw in raw["models"].items():
        model_cfg = ModelConfig(
            name=provider_name,
            sdk=model_raw["sdk"],
            model=model_raw["model"],
            api_key_env=model_raw["api_key_env"],
            timeout_sec=int(model_raw["timeout_sec"]),
            max_tokens=int(model_raw["max_tokens"]),
            display_name=str(model_raw.get("display_name", "")),
            base_url=model_raw.get("base_url"),
        )
        models[provider_name] = model_cfg

        api_key = os.environ.get(model_raw["api_key_env"], "").strip()
        if api_key:
            available_providers.add(provider_name)
            logger.info("Provider available: %s", provider_name)
        else:
            logger.info(
                "Provider skipped (no API key): %s, set %s in .env",
                provider_name,
                model_raw["api_key_env"],
            )

    return AppConfig(
        defaults=defaults,
        models=models,
        prompts=prompts,
        routing=_load_routing(raw.get("routing", {})),
        judge=_load_judge(raw["judge"]),
        available_providers=available_providers,
    )
