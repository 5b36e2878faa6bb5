"""Rich rendering for pipeline results and check previews."""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from changegate.schemas.changes import (
    CandidateChange,
    PipelineResult,
    RiskLevel,
    SafetyCheckResult,
)

_RISK_STYLE = {
    RiskLevel.LOW: "bold green",
    RiskLevel.MEDIUM: "bold yellow",
    RiskLevel.HIGH: "bold red",
}


def risk_style(level: RiskLevel) -> str:
    return _RISK_STYLE.get(level, "white")


def _score_style(score: float) -> str:
    if score >= 80:
        return "green"
    if score >= 60:
        return "yellow"
    return "red"


def render_result(console: Console, result: PipelineResult) -> None:
    """Print a summary panel plus per-change tables."""
    report = result.safety_report
    style = risk_style(report.risk_level)
    outcome = (
        "[green]committed[/green]" if not result.rolled_back
        else "[yellow]rolled back[/yellow]"
    )
    token = result.rollback_token.token_id if result.rollback_token else "none"

    console.print(Panel(
        f"[bold]Outcome:[/bold] {outcome}\n"
        f"[bold]Risk:[/bold] [{style}]{report.risk_level.value}[/{style}]\n"
        f"[bold]Score:[/bold] [{_score_style(report.overall_score)}]"
        f"{report.overall_score:.1f}[/{_score_style(report.overall_score)}]/100\n"
        f"[bold]Checks:[/bold] {report.checks_passed}/{report.checks_performed} passed\n"
        f"[bold]Rollback token:[/bold] {token}\n\n"
        f"[dim]{escape(report.summary)}[/dim]",
        title=f"[bold blue]changegate batch {result.batch_id}[/bold blue]",
        border_style="blue",
    ))

    applied = result.implemented_changes or result.reverted_changes
    if applied:
        table = Table(title="Reverted changes" if result.rolled_back else "Applied changes")
        table.add_column("File", style="cyan")
        table.add_column("Change")
        table.add_column("Mode")
        table.add_column("Pre-check score", justify="right")
        for change in applied:
            scores = [r.score for r in change.validation_results]
            avg = sum(scores) / len(scores)
            mode = "create" if change.original_content is None else "overwrite"
            table.add_row(change.file_path, change.change_id, mode, f"{avg:.1f}")
        console.print(table)

    if result.failed_changes:
        table = Table(title="Failed changes")
        table.add_column("File", style="cyan")
        table.add_column("Risk")
        table.add_column("Error")
        for failed in result.failed_changes:
            fstyle = risk_style(failed.risk_level)
            table.add_row(
                failed.file_path,
                f"[{fstyle}]{failed.risk_level.value}[/{fstyle}]",
                escape(failed.error),
            )
        console.print(table)

    if result.post_validation:
        render_results_table(console, "Post-implementation validation", result.post_validation)


def render_results_table(
    console: Console, title: str, results: list[SafetyCheckResult],
) -> None:
    table = Table(title=title)
    table.add_column("Check")
    table.add_column("Passed")
    table.add_column("Score", justify="right")
    table.add_column("Issues")
    for r in results:
        table.add_row(
            r.check_name,
            "[green]yes[/green]" if r.passed else "[red]no[/red]",
            f"[{_score_style(r.score)}]{r.score:.0f}[/{_score_style(r.score)}]",
            escape("\n".join(r.issues)) or "[dim]-[/dim]",
        )
    console.print(table)


def render_preview(
    console: Console,
    preview: list[tuple[CandidateChange, list[SafetyCheckResult]]],
) -> None:
    """Print one results table per change for a dry run."""
    for change, results in preview:
        title = escape(f"{change.file_path} ({change.risk_tier.value}) {change.description}".strip())
        render_results_table(console, title, results)
