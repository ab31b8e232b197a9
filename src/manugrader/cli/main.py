"""Main CLI entry point using Typer."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table


def _load_env():
    """Load environment variables from a .env file in the working directory."""
    env_path = Path.cwd() / ".env"
    if not env_path.exists():
        return

    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#") and "=" in line:
                key, value = line.split("=", 1)
                os.environ.setdefault(key.strip(), value.strip())


# Load .env at import time
_load_env()

from manugrader.cli.templates import CONFIG_TEMPLATE, REFERENCES_TEMPLATE
from manugrader.config.references import ReferenceTable
from manugrader.config.settings import (
    CONFIG_FILENAME,
    REFERENCES_FILENAME,
    ManugraderConfig,
    find_config_path,
)
from manugrader.documents import DocumentError, extract_text
from manugrader.grading.orchestrator import GradingJob, JobResult
from manugrader.llm.factory import ClientPool

app = typer.Typer(
    name="manugrader",
    help="Grade a manuscript by repeated model sampling and match it to venues",
    no_args_is_help=True,
)
console = Console(highlight=False)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _resolve_config(config: Path | None) -> tuple[ManugraderConfig, Path]:
    if config is not None:
        config_path = config.resolve()
        if not config_path.exists():
            console.print(f"[red]Config file not found: {config_path}[/red]")
            raise typer.Exit(1)
    else:
        config_path = find_config_path()
        if config_path is None:
            console.print(f"[red]No {CONFIG_FILENAME} found[/red]")
            console.print("Run [cyan]manugrader init[/cyan] first")
            raise typer.Exit(1)

    try:
        return ManugraderConfig.load(config_path), config_path
    except ValueError as e:
        console.print(f"[red]Invalid configuration in {config_path}:[/red] {e}")
        raise typer.Exit(1) from e


def _load_references(settings: ManugraderConfig, config_path: Path) -> ReferenceTable:
    path = settings.references_path(config_path)
    try:
        return ReferenceTable.load(path)
    except ValueError as e:
        console.print(f"[red]Invalid reference table in {path}:[/red] {e}")
        raise typer.Exit(1) from e


@app.command()
def init(
    directory: Path = typer.Argument(
        Path("."),
        help="Directory to initialize (default: current directory)",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite existing config files",
    ),
) -> None:
    """Write a starter manugrader.yaml and references.yaml."""
    directory = directory.resolve()

    if not directory.exists():
        console.print(f"[red]Directory does not exist: {directory}[/red]")
        raise typer.Exit(1)

    created = []
    for filename, content in (
        (CONFIG_FILENAME, CONFIG_TEMPLATE),
        (REFERENCES_FILENAME, REFERENCES_TEMPLATE),
    ):
        path = directory / filename
        if path.exists() and not force:
            console.print(f"[yellow]{filename} already exists. Use --force to overwrite.[/yellow]")
            continue
        path.write_text(content)
        created.append(filename)

    if created:
        console.print("\n[bold]Files created:[/bold]")
        for filename in created:
            console.print(f"  [green]+[/green] {filename}")
    else:
        console.print("  [dim]No new files created (all exist already)[/dim]")

    console.print("\n[bold]Setup:[/bold]")
    console.print(f"  1. [cyan]{CONFIG_FILENAME}[/cyan] — set your API key or export OPENROUTER_API_KEY")
    console.print(f"  2. [cyan]{REFERENCES_FILENAME}[/cyan] — list your topics and target venues")
    console.print("  3. Run [cyan]manugrader grade paper.pdf[/cyan]")


@app.command()
def grade(
    manuscript: Path = typer.Argument(..., help="Manuscript file (.pdf, .docx or .txt)"),
    config: Path = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to manugrader.yaml (default: search parent directories)",
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Grade a manuscript and list matching venues."""
    _setup_logging(verbose)
    settings, config_path = _resolve_config(config)
    references = _load_references(settings, config_path)

    try:
        document = extract_text(manuscript)
    except DocumentError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e

    try:
        result = asyncio.run(_run_job(settings, references, document.text, document.derived_format, quiet=as_json))
    except ValueError as e:
        # Raised for missing credentials or malformed model ids
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e

    if as_json:
        typer.echo(json.dumps(result.to_dict(), indent=2))
    else:
        _render_result(result, derived_format=document.derived_format)

    if not result.succeeded:
        raise typer.Exit(1)


@app.command()
def references(
    config: Path = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to manugrader.yaml (default: search parent directories)",
    ),
) -> None:
    """List the configured topics and venues."""
    settings, config_path = _resolve_config(config)
    table_data = _load_references(settings, config_path)
    topic_names = {topic.id: topic.name for topic in table_data.topics}

    topics = Table(title="Topics")
    topics.add_column("ID", style="dim")
    topics.add_column("Name", style="cyan", no_wrap=True)
    topics.add_column("Description")
    for topic in table_data.topics:
        topics.add_row(topic.id, topic.name, topic.description or "")
    console.print(topics)

    venues = Table(title="Venues")
    venues.add_column("Venue", style="cyan", no_wrap=True)
    venues.add_column("Mark")
    venues.add_column("Low bound", justify="right")
    venues.add_column("Affinities")
    for venue in table_data.venues:
        affinities = ", ".join(
            f"{topic_names.get(topic_id, topic_id)}={score}"
            for topic_id, score in venue.affinities.items()
        )
        venues.add_row(venue.name, venue.mark or "—", f"{venue.low_bound:.1f}", affinities)
    console.print(venues)


async def _run_job(
    settings: ManugraderConfig,
    references: ReferenceTable,
    text: str,
    derived_format: bool,
    quiet: bool = False,
) -> JobResult:
    pool = ClientPool(settings)
    try:
        grading_oracle = pool.oracle_for(settings.models.grading)
        keyword_oracle = pool.oracle_for(settings.models.keyword)

        job = GradingJob(
            config=settings.engine,
            grading_oracle=grading_oracle,
            keyword_oracle=keyword_oracle,
            grading_prompt=settings.prompts.grading,
            keyword_prompt=settings.prompts.keyword_selection,
            references=references,
        )

        # JSON output stays free of live spinner control sequences
        if quiet:
            return await job.run(text, derived_format=derived_format)

        with console.status("Starting...", spinner="dots") as status:

            def progress(attempts_run: int, valid_count: int, message: str) -> None:
                status.update(f"{message} [dim]({valid_count}/{attempts_run})[/dim]")

            job.progress = progress
            return await job.run(text, derived_format=derived_format)
    finally:
        await pool.close()


def _render_result(result: JobResult, derived_format: bool = False) -> None:
    if not result.succeeded or result.outcome is None:
        console.print(f"[red]Grading failed:[/red] {result.error_message}")
        return

    outcome = result.outcome
    console.print(f"\n[bold]Composite score:[/bold] [cyan]{outcome.composite:.2f}[/cyan]")
    console.print(
        f"[dim]{outcome.valid_runs} valid of {outcome.attempts_run} attempts. "
        f"{outcome.decision_reason}[/dim]"
    )
    if derived_format:
        console.print("[yellow]DOCX source: a derived-format penalty was applied.[/yellow]")
    if outcome.justification:
        console.print(f"[bold]Model note:[/bold] {outcome.justification}")

    levels = Table(title="Per-level profile (trimmed means)")
    for i in range(len(outcome.per_level)):
        levels.add_column(f"Level {i + 1}", justify="right")
    levels.add_row(*(f"{value:.1f}" for value in outcome.per_level))
    console.print(levels)

    main = result.keywords.main or "not identified"
    peripheral = ", ".join(result.keywords.peripheral) or "none"
    console.print(f"[bold]Main topic:[/bold] {main}")
    console.print(f"[bold]Secondary topics:[/bold] {peripheral}")

    if not result.recommendations:
        console.print("\n[dim]No venues matched this score and topic profile.[/dim]")
        return

    table = Table(title="Recommended venues")
    table.add_column("Venue", style="cyan", no_wrap=True)
    table.add_column("Mark")
    table.add_column("Low bound", justify="right")
    table.add_column("Match", justify="right")
    table.add_column("Adjusted threshold", justify="right")
    for rec in result.recommendations:
        table.add_row(
            rec.venue_name,
            rec.reference_mark or "—",
            f"{rec.low_bound:.1f}",
            str(rec.match_strength),
            f"{rec.adjusted_threshold:.2f}",
        )
    console.print(table)

    console.print(f"[dim]Tokens used: {result.usage.total_tokens}[/dim]")


if __name__ == "__main__":
    app()
