"""Command line interface for the artifact sweeper."""

from __future__ import annotations

import os
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from .config import Settings, SweepConfig, load_settings, resolve_config
from .errors import ConfigError, SweeperError
from .models import SweepSummary
from .services.github_client import GitHubClient
from .utils.logging import configure_logging, get_logger
from .workflows.sweep import ArtifactStore, sweep

app = typer.Typer(help="Delete old GitHub Actions artifacts", no_args_is_help=True)
console = Console()


@app.callback()
def main() -> None:
    """Clean up workflow artifacts of the repository in GITHUB_REPOSITORY."""


@app.command("sweep")
def sweep_command(
    age: Optional[str] = typer.Option(
        None, "--age", envvar="INPUT_AGE", help="Maximum artifact age, e.g. '30 days'."
    ),
    skip_tags: Optional[str] = typer.Option(
        None, "--skip-tags", envvar="INPUT_SKIP-TAGS", help="Keep artifacts of runs on tagged commits (yes/no)."
    ),
    skip_recent: Optional[str] = typer.Option(
        None, "--skip-recent", envvar="INPUT_SKIP-RECENT", help="Number of most recent artifacts to keep."
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Log deletions without performing them."),
    concurrency: Optional[int] = typer.Option(None, "--concurrency", min=1, help="Maximum concurrent requests."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Increase logging verbosity."),
) -> None:
    """Delete artifacts older than --age from recent workflow runs."""

    configure_logging(verbose=verbose)
    logger = get_logger("artifact_sweeper.cli")

    try:
        settings = load_settings()
        logger.debug("Settings: %s", settings.to_dict())
        config = resolve_config(
            settings,
            age=settings.read_input("age", age),
            skip_tags=settings.read_input("skip-tags", skip_tags),
            skip_recent=settings.read_input("skip-recent", skip_recent),
            dry_run=dry_run,
            max_concurrency=concurrency,
        )
        client = _build_client(settings, config)
        summary = sweep(config, client)
    except (SweeperError, ValidationError) as exc:
        logger.debug("Sweep aborted", exc_info=True)
        _fail(str(exc))
        raise typer.Exit(code=1) from exc

    _print_summary(summary)


def _build_client(settings: Settings, config: SweepConfig) -> ArtifactStore:
    if not settings.token and not config.dry_run:
        raise ConfigError("A token is required: set GITHUB_TOKEN (or GH_TOKEN).")
    return GitHubClient.from_settings(settings, config)


def _fail(message: str) -> None:
    console.print(f"Sweep failed: {message}", style="red", markup=False, highlight=False, soft_wrap=True)
    if os.environ.get("GITHUB_ACTIONS") == "true":
        # Workflow command that marks the step as failed in the Actions UI.
        typer.echo(f"::error::{message}")


def _print_summary(summary: SweepSummary) -> None:
    table = Table(title=f"Artifact sweep of {summary.repository}", show_lines=False)
    table.add_column("Outcome")
    table.add_column("Artifacts", justify="right")
    for outcome, count in summary.counts().items():
        table.add_row(outcome, str(count))

    console.print(table)
    console.print(f"Cutoff: {summary.cutoff.isoformat()}")
    console.print(
        f"Runs listed: {summary.runs_listed}, examined: {summary.runs_examined}, "
        f"skipped tagged: {summary.runs_skipped_tagged}, skipped old: {summary.runs_skipped_old}"
    )
    if summary.dry_run:
        console.print("Dry run: no artifact was removed.")
    for result in summary.failed:
        console.print(
            f"Failed to delete {result.artifact.id} ({result.artifact.name}): {result.error}", markup=False
        )


__all__ = ["app", "sweep_command"]
