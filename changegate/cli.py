"""changegate CLI — Typer + Rich terminal interface.

Commands: apply, checks, rollback, tokens.
"""

from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from changegate import __version__
from changegate.backup import store_for
from changegate.display import render_preview, render_result
from changegate.errors import BatchInProgressError, RollbackFailure
from changegate.loader import load_changes
from changegate.pipeline import SafetyPipeline
from changegate.schemas.config import GateConfig
from changegate.settings import find_project_config, load_gate_config

console = Console()

app = typer.Typer(
    name="changegate",
    help="Apply proposed source changes behind safety gates with automatic rollback.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"changegate {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Log pipeline stages to stderr.",
    ),
) -> None:
    """changegate — safety-gated change application."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


# ── Helpers ──────────────────────────────────────────────────────


def _load_config(project: Path, config_file: str | None) -> GateConfig:
    """Load gate config for ``project``, exit on error."""
    path = Path(config_file) if config_file else find_project_config(project)
    try:
        return load_gate_config(path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error loading config:[/red] {e}")
        raise typer.Exit(1) from None


def _load_batch(changes_file: str):
    try:
        return load_changes(Path(changes_file))
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error loading changes:[/red] {e}")
        raise typer.Exit(1) from None


_PROJECT_OPTION = typer.Option(
    ".", "--project", "-p", help="Project root the changes apply to",
)
_CONFIG_OPTION = typer.Option(
    None, "--config", "-c", help="Config file (default: <project>/changegate.toml)",
)


# ── Commands ─────────────────────────────────────────────────────


@app.command()
def apply(
    changes_file: str = typer.Argument(..., help="JSON file of candidate changes"),
    project: str = _PROJECT_OPTION,
    config_file: str = _CONFIG_OPTION,
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
) -> None:
    """Apply a batch of candidate changes."""
    root = Path(project).resolve()
    config = _load_config(root, config_file)
    batch = _load_batch(changes_file)
    pipeline = SafetyPipeline(root, config)

    try:
        with console.status("[bold blue]Applying changes...", spinner="dots"):
            result = pipeline.run(batch)
    except RollbackFailure as e:
        console.print(f"[bold red]ROLLBACK FAILED:[/bold red] {e}")
        for path in e.failed_paths:
            console.print(f"  [red]✗[/red] {path}")
        console.print("[red]The project may be partially modified. Manual repair required.[/red]")
        raise typer.Exit(2) from None
    except BatchInProgressError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    if as_json:
        typer.echo(result.model_dump_json(indent=2))
    else:
        render_result(console, result)

    if result.rolled_back:
        raise typer.Exit(1)


@app.command()
def checks(
    changes_file: str = typer.Argument(..., help="JSON file of candidate changes"),
    project: str = _PROJECT_OPTION,
    config_file: str = _CONFIG_OPTION,
) -> None:
    """Run the safety checks without writing anything."""
    root = Path(project).resolve()
    config = _load_config(root, config_file)
    batch = _load_batch(changes_file)
    render_preview(console, SafetyPipeline(root, config).preview(batch))


@app.command()
def rollback(
    token_id: str = typer.Argument(..., help="Rollback token id from an earlier batch"),
    project: str = _PROJECT_OPTION,
    config_file: str = _CONFIG_OPTION,
) -> None:
    """Restore the project to a recorded snapshot."""
    root = Path(project).resolve()
    config = _load_config(root, config_file)
    pipeline = SafetyPipeline(root, config)
    try:
        restored = pipeline.rollback_by_id(token_id)
    except RollbackFailure as e:
        console.print(f"[bold red]ROLLBACK FAILED:[/bold red] {e}")
        raise typer.Exit(2) from None
    except BatchInProgressError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    console.print(f"[green]Restored {len(restored)} path(s) from {token_id}[/green]")
    for path in restored:
        console.print(f"  [dim]{path}[/dim]")


@app.command()
def tokens(
    project: str = _PROJECT_OPTION,
    config_file: str = _CONFIG_OPTION,
) -> None:
    """List recorded rollback tokens."""
    root = Path(project).resolve()
    config = _load_config(root, config_file)
    recorded = store_for(root, config.backup).list_tokens()
    if not recorded:
        console.print("[dim]No rollback tokens recorded.[/dim]")
        return

    table = Table(title="Rollback tokens")
    table.add_column("Token", style="cyan")
    table.add_column("Backend")
    table.add_column("Created")
    table.add_column("Paths", justify="right")
    for token in recorded:
        table.add_row(
            token.token_id,
            token.backend.value,
            token.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            str(len(token.paths)),
        )
    console.print(table)


if __name__ == "__main__":
    app()
