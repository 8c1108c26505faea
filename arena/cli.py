"""Click CLI: config loading, provider selection, arena rounds, quick answers and stats."""

import asyncio
import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from arena.healthcheck import run_health_checks
from arena.intent import classify, score_categories
from arena.models import ARENA_KINDS, JudgeEvent, RoundEvent, RoutingDecision, SessionPrompt
from arena.output import print_judge_result, print_preferences, print_round_summary, print_routing, save_to_file
from arena.pipeline import ArenaOutcome, NoCompletedResponsesError, run_arena
from arena.preferences import preference_summary
from arena.providers.anthropic import AnthropicProvider
from arena.providers.base import AIProvider
from arena.providers.gemini import GeminiProvider
from arena.providers.openai_compatible import OpenAICompatibleProvider
from arena.providers.openai_provider import OpenAIProvider
from arena.quick import run_quick
from arena.routing import route
from arena.store import PreferenceStore
from config.config_loader import AppConfig, load_config

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

# Keyed by the ``sdk`` field of each model in settings.yaml.
PROVIDER_CLASSES: dict[str, type[AIProvider]] = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
    "openai_compatible": OpenAICompatibleProvider,
    "gemini": GeminiProvider,
}


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _build_all_providers(config: AppConfig) -> dict[str, AIProvider]:
    """Build all available providers. Returns dict keyed by backend id."""
    providers: dict[str, AIProvider] = {}
    for name in sorted(config.available_providers):
        model_cfg = config.models[name]
        provider_cls = PROVIDER_CLASSES.get(model_cfg.sdk)
        if provider_cls is None:
            logger.warning("Provider '%s' uses unknown sdk '%s', skipping", name, model_cfg.sdk)
            continue
        try:
            providers[name] = provider_cls(model_cfg)
        except Exception as exc:
            logger.warning("Failed to instantiate provider '%s': %s", name, exc)
    return providers


def _determine_panel(config: AppConfig, models_arg: str | None, available: dict[str, AIProvider]) -> list[str]:
    """--models wins; otherwise the configured panel, limited to what is available."""
    if models_arg:
        return list(dict.fromkeys(m.strip() for m in models_arg.split(",") if m.strip()))
    return [name for name in config.defaults.arena_panel if name in available]


def _pick_judge(all_providers: dict[str, AIProvider], preferred: str) -> AIProvider | None:
    """Preferred judge if it can call tools, else the first provider that can."""
    candidate = all_providers.get(preferred)
    if candidate is not None and candidate.supports_tools():
        return candidate
    for provider in all_providers.values():
        if provider.supports_tools():
            logger.warning("Judge '%s' unavailable, using '%s'", preferred, provider.name())
            return provider
    return None


def _check_and_filter_providers(all_providers: dict[str, AIProvider]) -> dict[str, AIProvider]:
    """Run health checks, print results, and ask user what to do on failures.

    Returns the filtered dict of working providers. Exits if the user
    declines to continue or no providers pass.
    """
    console.print("\n[bold]Checking providers...[/bold]")
    results: dict[str, tuple[bool, str]] = asyncio.run(run_health_checks(all_providers))

    failed_names: list[str] = []
    for name in sorted(results):
        ok, err = results[name]
        if ok:
            console.print(f"  [green]OK  [/green] {name}")
        else:
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {name}: {short_err}")
            failed_names.append(name)

    if not failed_names:
        console.print()
        return all_providers

    working = {n: p for n, p in all_providers.items() if n not in failed_names}

    if not working:
        console.print("\n[bold red]Error:[/bold red] No providers passed the health check.")
        sys.exit(1)

    console.print(
        f"\n[yellow]{len(failed_names)} provider(s) failed:[/yellow] {', '.join(failed_names)}"
    )
    console.print(f"Working providers: {', '.join(sorted(working))}")

    if not click.confirm("Continue with working providers only?", default=True):
        sys.exit(0)

    console.print()
    return working


def _open_store(config: AppConfig, user_id: str | None) -> PreferenceStore | None:
    return PreferenceStore(config.defaults.db_path) if user_id else None


async def _run_session(
    prompts: tuple[str, ...],
    panel: list[str],
    providers: dict[str, AIProvider],
    judge: AIProvider,
    config: AppConfig,
    store: PreferenceStore | None,
    user_id: str | None,
    arena_kind: str | None,
) -> list[ArenaOutcome]:
    """Run each prompt as a judged round; later rounds see earlier ones as context."""
    display_names = {name: config.display_name(name) for name in config.models}
    outcomes: list[ArenaOutcome] = []
    session = SessionPrompt(text=prompts[0])

    for number, text in enumerate(prompts, start=1):
        if outcomes:
            session = session.next_round(text, outcomes[-1].completed)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            TimeElapsedColumn(),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task(f"Round {number}: streaming {len(panel)} models...", total=None)

            def on_event(event: RoundEvent | JudgeEvent) -> None:
                if isinstance(event, RoundEvent):
                    label = display_names.get(event.backend_id, event.backend_id)
                    if event.event_type == "complete":
                        progress.print(f"[green]OK[/green] {label} ({event.payload['total_sec']:.1f}s)")
                    elif event.event_type == "error":
                        progress.print(f"[red]FAIL[/red] {label}: {escape(event.payload['error'])}")
                elif event.event_type == "scoring":
                    progress.update(
                        task,
                        description=f"Judging: {event.payload['model']} {event.payload['category']} "
                        f"{event.payload['score']:g}",
                    )
                elif event.event_type == "verdict":
                    progress.update(task, description="Verdict in...")

            try:
                outcome = await run_arena(
                    session=session,
                    backends=panel,
                    providers=providers,
                    judge_provider=judge,
                    config=config,
                    store=store,
                    user_id=user_id,
                    arena=arena_kind,
                    on_event=on_event,
                )
            except NoCompletedResponsesError as exc:
                console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
                break

        print_round_summary(number, outcome.responses, display_names)
        if outcome.result is not None:
            print_judge_result(outcome.result, config.judge.arenas[outcome.arena].name, display_names)
        else:
            console.print(f"[yellow]No verdict:[/yellow] {escape(outcome.judge_error or '')}")
        if outcome.recorded:
            console.print(f"[dim]Preferences updated for {user_id} ({outcome.category})[/dim]")
        outcomes.append(outcome)

    return outcomes


async def _run_quick(prompt: str, user_id: str | None, providers: dict[str, AIProvider],
                     store: PreferenceStore | None, config: AppConfig) -> bool:
    ok = True
    async for event in run_quick(prompt, user_id, providers, store, config):
        if event.event_type == "routing":
            payload = event.payload
            decision = RoutingDecision(payload["backend"], payload["reason"], payload["confidence"], payload["category"])
            print_routing(decision, payload["display_name"])
            console.print()
        elif event.event_type == "content":
            console.print(event.payload["content"], end="", markup=False, highlight=False)
        elif event.event_type == "done":
            console.print()
            console.print(f"[dim]{event.payload['total_sec']:.1f}s[/dim]")
        else:
            console.print(f"\n[bold red]Error:[/bold red] {escape(event.payload['error'])}")
            ok = False
    return ok


@click.group()
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """Model Arena -- side-by-side model rounds, judged, with learned routing.

    \b
    Examples:
      model-arena arena "Write a haiku about rain" --user alice
      model-arena arena "REST or GraphQL?" "What about gRPC?" --arena debate
      model-arena quick "Fix this python function" --user alice
      model-arena route "Summarize the history of Rome"
      model-arena stats --user alice
    """
    # Reconfigure stdout/stderr to UTF-8 on Windows so model responses containing
    # Unicode chars don't crash the ANSI render path.
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")

    load_dotenv()
    _setup_logging(verbose)

    try:
        ctx.obj = load_config()
    except FileNotFoundError as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)


@main.command("arena")
@click.argument("prompts", nargs=-1, required=True)
@click.option("--models", default=None, help="Comma-separated backend list, overrides the configured panel")
@click.option("--arena", "arena_kind", type=click.Choice(ARENA_KINDS), default=None,
              help="Judging rubric (default: derived from the prompt category)")
@click.option("--judge", "judge_name", default=None, help="Judge backend (default: from config)")
@click.option("--user", "user_id", default=None, help="Record the outcome under this user id")
@click.option("--save", is_flag=True, help="Save the transcript as markdown")
@click.option("--output", "output_path", default=None, help="Output directory (default: from config)")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip the API connectivity check at startup")
@click.pass_obj
def arena_command(
    config: AppConfig,
    prompts: tuple[str, ...],
    models: str | None,
    arena_kind: str | None,
    judge_name: str | None,
    user_id: str | None,
    save: bool,
    output_path: str | None,
    skip_health_check: bool,
) -> None:
    """Run PROMPTS as judged rounds. Each extra prompt is a follow-up round."""
    all_providers = _build_all_providers(config)
    if not all_providers:
        console.print("[bold red]Error:[/bold red] No providers available. Check API keys in .env.")
        sys.exit(1)

    if not skip_health_check:
        all_providers = _check_and_filter_providers(all_providers)

    panel = _determine_panel(config, models, all_providers)
    missing = [name for name in panel if name not in all_providers]
    if missing:
        console.print(f"[bold red]Error:[/bold red] Unavailable backends: {', '.join(missing)}")
        sys.exit(1)
    if len(panel) < 2:
        console.print(
            f"[bold red]Error:[/bold red] Need at least 2 backends in the panel, got {len(panel)}. "
            "Check API keys in .env or adjust --models."
        )
        sys.exit(1)

    judge = _pick_judge(all_providers, judge_name or config.defaults.judge)
    if judge is None:
        console.print("[bold red]Error:[/bold red] No available backend can act as judge.")
        sys.exit(1)

    console.print(f"\n[bold cyan]Model Arena[/bold cyan] {len(panel)} models, {len(prompts)} round(s)")
    console.print(f"Panel: {', '.join(config.display_name(n) for n in panel)}")
    console.print(f"Judge: {config.display_name(judge.name())}")
    category = classify(prompts[0])
    console.print(f"Prompt: [italic]{prompts[0][:80]}{'...' if len(prompts[0]) > 80 else ''}[/italic] ({category})\n")

    outcomes = asyncio.run(
        _run_session(
            prompts=prompts,
            panel=panel,
            providers=all_providers,
            judge=judge,
            config=config,
            store=_open_store(config, user_id),
            user_id=user_id,
            arena_kind=arena_kind,
        )
    )

    if save and outcomes:
        output_dir = Path(output_path) if output_path else config.defaults.output_dir
        display_names = {name: config.display_name(name) for name in config.models}
        saved_path = save_to_file(outcomes, output_dir, display_names)
        console.print(f"\n[dim]Saved to: {saved_path}[/dim]")

    if not outcomes:
        sys.exit(1)


@main.command("quick")
@click.argument("prompt")
@click.option("--user", "user_id", default=None, help="Route using this user's preferences")
@click.pass_obj
def quick_command(config: AppConfig, prompt: str, user_id: str | None) -> None:
    """Answer PROMPT with the single backend routing recommends."""
    all_providers = _build_all_providers(config)
    if not all_providers:
        console.print("[bold red]Error:[/bold red] No providers available. Check API keys in .env.")
        sys.exit(1)
    ok = asyncio.run(_run_quick(prompt, user_id, all_providers, _open_store(config, user_id), config))
    if not ok:
        sys.exit(1)


@main.command("route")
@click.argument("prompt")
@click.option("--user", "user_id", default=None, help="Route using this user's preferences")
@click.pass_obj
def route_command(config: AppConfig, prompt: str, user_id: str | None) -> None:
    """Show how PROMPT is classified and which backend it would go to."""
    category = classify(prompt)
    display_names = {name: config.display_name(name) for name in config.models}
    decision = route(_open_store(config, user_id), user_id, category, config.routing, display_names)
    print_routing(decision, config.display_name(decision.backend))
    scores = ", ".join(f"{c}={s}" for c, s in score_categories(prompt).items())
    console.print(f"[dim]Category scores: {scores}[/dim]")


@main.command("stats")
@click.option("--user", "user_id", required=True, help="User id whose preferences to show")
@click.pass_obj
def stats_command(config: AppConfig, user_id: str) -> None:
    """Show win/round counts per category for a user."""
    store = PreferenceStore(config.defaults.db_path)
    display_names = {name: config.display_name(name) for name in config.models}
    print_preferences(preference_summary(store, user_id), display_names)


if __name__ == "__main__":
    main()
