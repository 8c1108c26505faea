"""Rich console output and markdown file save for arena results."""

import logging
import re
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from arena.intent import category_label
from arena.models import BackendResponse, BackendStatus, JudgeResult, PreferenceStat, RoutingDecision
from arena.pipeline import ArenaOutcome

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def _response_preview(content: str, words: int = 50) -> str:
    """Return first N words of a response."""
    all_words = content.split()
    preview = " ".join(all_words[:words])
    if len(all_words) > words:
        preview += "..."
    return preview


def print_round_summary(
    round_num: int,
    responses: dict[str, BackendResponse],
    display_names: dict[str, str] | None = None,
) -> None:
    """Print a brief summary of round responses to the console."""
    names = display_names or {}
    console.print(Rule(f"[bold cyan]Round {round_num} Summary[/bold cyan]"))
    for backend, resp in responses.items():
        if resp.status is BackendStatus.COMPLETE:
            body = _response_preview(resp.content)
            subtitle = f"ttft {resp.latency.ttft_sec:.1f}s | total {resp.latency.total_sec:.1f}s"
            border = "dim"
        else:
            body = f"[red]{escape(resp.error or resp.status.value)}[/red]"
            subtitle = f"{resp.latency.total_sec:.1f}s"
            border = "red"
        console.print(
            Panel(
                body,
                title=f"[bold]{names.get(backend, backend)}[/bold] ({backend})",
                subtitle=subtitle,
                border_style=border,
            )
        )


def _criteria(result: JudgeResult) -> list[str]:
    seen: list[str] = []
    for by_criterion in result.scores.values():
        for criterion in by_criterion:
            if criterion not in seen:
                seen.append(criterion)
    return seen


def print_judge_result(result: JudgeResult, judge_title: str, display_names: dict[str, str] | None = None) -> None:
    """Print the scoreboard and verdict."""
    names = display_names or {}
    console.print(Rule(f"[bold green]{judge_title}[/bold green]"))
    if result.opening_remarks:
        console.print(Text(result.opening_remarks, style="italic"))

    criteria = _criteria(result)

    table = Table(show_header=True, header_style="bold")
    table.add_column("Model")
    for criterion in criteria:
        table.add_column(criterion.replace("_", " ").title(), justify="right")
    table.add_column("Total", justify="right", style="bold")
    totals = result.totals()
    for backend in sorted(result.scores, key=lambda b: totals.get(b, 0.0), reverse=True):
        row = [names.get(backend, backend)]
        for criterion in criteria:
            entry = result.scores[backend].get(criterion)
            row.append(f"{entry.score:g}" if entry else "-")
        row.append(f"{totals[backend]:g}")
        style = "green" if backend == result.verdict.winner else None
        table.add_row(*row, style=style)
    console.print(table)

    for analysis in result.analyses:
        console.print(
            Panel(
                f"{analysis.analysis}\n\n[green]Best:[/green] {analysis.strongest_moment}\n"
                f"[red]Weakness:[/red] {analysis.weakness}",
                title=names.get(analysis.backend, analysis.backend),
                border_style="dim",
            )
        )
    for passage in result.passages:
        console.print(
            Text(f"{names.get(passage.backend, passage.backend)}: \"{passage.quote}\"", style="cyan"),
            Text(f"  {passage.comment}", style="dim"),
            sep="\n",
        )
    if result.head_to_head:
        console.print(Markdown(result.head_to_head))

    winner =names.get(result.verdict.winner, result.verdict.winner)
    console.print(Panel(
        Markdown(result.verdict.verdict),
        title=f"[bold green]Winner: {winner}[/bold green]",
        subtitle=result.verdict.highlight or None,
        border_style="green",
    ))


def print_routing(decision: RoutingDecision, display_name: str) -> None:
    console.print(
        f"[bold]{category_label(decision.category)}[/bold] -> [cyan]{display_name}[/cyan] "
        f"({decision.confidence}% confidence)"
    )
    console.print(Text(decision.reason, style="dim"))


def print_preferences(summary: dict[str, list[PreferenceStat]], display_names: dict[str, str] | None = None) -> None:
    names = display_names or {}
    table = Table(title="Your model preferences", show_header=True, header_style="bold")
    table.add_column("Category")
    table.add_column("Model")
    table.add_column("Wins", justify="right")
    table.add_column("Rounds", justify="right")
    table.add_column("Win rate", justify="right")
    for category, stats in summary.items():
        if not stats:
            table.add_row(category_label(category), "[dim]no data yet[/dim]", "", "", "")
            continue
        for idx, stat in enumerate(stats):
            table.add_row(
                category_label(category) if idx == 0 else "",
                names.get(stat.backend, stat.backend),
                str(stat.wins),
                str(stat.total),
                f"{stat.win_rate:.0f}%",
            )
    console.print(table)


def save_to_file(
    outcomes: list[ArenaOutcome],
    output_dir: Path,
    display_names: dict[str, str] | None = None,
    slug_override: str | None = None,
) -> Path:
    """Save the full arena transcript as a markdown file.

    Args:
        outcomes: Judged rounds of one session, in order.
        output_dir: Directory to save the file in.
        display_names: Backend id -> display name for headings.
        slug_override: If provided, use this as the filename stem instead of
            deriving one from the first prompt.

    Returns:
        Path to the saved file.
    """
    if not outcomes:
        raise ValueError("Nothing to save")
    names = display_names or {}
    output_dir.mkdir(parents=True, exist_ok=True)

    first = outcomes[0]
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    slug = slug_override if slug_override is not None else _slug(first.session.text)
    filepath = output_dir / f"{timestamp}_{slug}.md"

    lines: list[str] = [
        f"# Model Arena: {first.session.text[:80]}",
        "",
        f"**Date:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Arena:** {first.arena}",
        f"**Category:** {category_label(first.category)}",
        f"**Judge:** {names.get(first.judge_name, first.judge_name)}",
        f"**Rounds:** {len(outcomes)}",
        f"**Duration:** {sum(o.duration_sec for o in outcomes):.1f}s",
        "",
        "---",
        "",
    ]

    for number, outcome in enumerate(outcomes, start=1):
        lines.append(f"## Round {number}: {outcome.session.text[:80]}")
        lines.append("")
        for backend, resp in outcome.responses.items():
            lines.append(f"### {names.get(backend, backend)} ({backend})")
            lines.append("")
            if resp.status is BackendStatus.COMPLETE:
                lines.append(resp.content)
                lines.append("")
                lines.append(
                    f"*TTFT: {resp.latency.ttft_sec:.2f}s | Total: {resp.latency.total_sec:.2f}s*"
                )
            else:
                lines.append(f"*Error: {resp.error}*")
            lines.append("")

        result = outcome.result
        if result is None:
            lines += ["### Verdict", "", f"*No verdict: {outcome.judge_error or 'judging did not finish'}*", ""]
            continue

        criteria = _criteria(result)
        lines += ["### Scores", "", "| Model | " + " | ".join(criteria) + " | Total |"]
        lines.append("|" + "---|" * (len(criteria) + 2))
        totals = result.totals()
        for backend, by_criterion in result.scores.items():
            cells = [f"{by_criterion[c].score:g}" if c in by_criterion else "-" for c in criteria]
            lines.append(f"| {names.get(backend, backend)} | " + " | ".join(cells) + f" | {totals[backend]:g} |")
        if result.passages:
            lines += ["", "### Highlighted Passages", ""]
            for passage in result.passages:
                lines.append(f"- **{names.get(passage.backend, passage.backend)}:** \"{passage.quote}\" ({passage.comment})")
        lines += [
            "",
            f"### Verdict: {names.get(result.verdict.winner, result.verdict.winner)} wins",
            "",
            result.verdict.verdict,
            "",
        ]
        if result.verdict.highlight:
            lines += [f"> {result.verdict.highlight}", ""]

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Arena transcript saved to: %s", filepath)
    return filepath
