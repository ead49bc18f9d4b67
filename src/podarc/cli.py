"""CLI entry point for podarc."""

import asyncio
import json
from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console
from rich.table import Table

from podarc.catalog.validator import audit_artifacts
from podarc.config.logging import setup_logging
from podarc.config.manager import ConfigManager
from podarc.config.schema import PipelineConfig
from podarc.enrichment.clients import create_client
from podarc.feeds.parser import RSSParser
from podarc.pipeline import (
    ArtifactStore,
    PipelineOptions,
    PipelineOrchestrator,
    PipelineReport,
    rebuild_slugs,
)
from podarc.pipeline.ledger import format_entry
from podarc.utils.errors import PodarcError

app = typer.Typer(
    name="podarc",
    help="Build a validated catalog of podcast episodes and multi-part series",
    no_args_is_help=True,
)
console = Console()


def _fail(message: str) -> NoReturn:
    """Print the machine-readable error and exit 1."""
    typer.echo(json.dumps({"status": "error", "message": message}))
    raise typer.Exit(code=1)


def _load(ctx: typer.Context) -> tuple[ConfigManager, PipelineConfig]:
    """Load config and apply its log level."""
    options = ctx.obj or {}
    manager = ConfigManager(config_dir=options.get("config_dir"))
    config = manager.load_config()
    setup_logging(
        verbose=options.get("verbose", False),
        log_file=options.get("log_file"),
        level=config.log_level,
    )
    return manager, config


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable verbose (DEBUG) logging"
    ),
    log_file: Path | None = typer.Option(
        None, "--log-file", help="Write logs to file"
    ),
    config_dir: Path | None = typer.Option(
        None, "--config-dir", help="Directory holding config.yaml and series-overrides.yaml"
    ),
) -> None:
    """podarc - Turn a podcast feed into a browsable episode and series catalog."""
    # Initialize logging before any command runs
    setup_logging(verbose=verbose, log_file=log_file)
    ctx.obj = {"config_dir": config_dir, "verbose": verbose, "log_file": log_file}


@app.command("version")
def show_version() -> None:
    """Show version information."""
    from podarc import __version__

    console.print(f"[bold cyan]podarc[/bold cyan] v{__version__}")


@app.command("config")
def config_command(
    ctx: typer.Context,
    action: str = typer.Argument(..., help="Action: show"),
) -> None:
    """Show podarc configuration.

    Examples:
        podarc config show
    """
    if action != "show":
        _fail(f"Unknown config action: {action}")

    try:
        manager, config = _load(ctx)
        overrides = manager.load_overrides()
    except PodarcError as e:
        _fail(str(e))

    console.print("\n[bold]podarc Configuration[/bold]\n")

    table = Table(show_header=False, box=None)
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="white")

    table.add_row("Config file", str(manager.config_file))
    table.add_row("Overrides file", str(manager.overrides_file))
    table.add_row("", "")
    table.add_row("Feed URL", config.feed_url or "[dim]not set[/dim]")
    table.add_row("Output directory", str(config.output_dir))
    table.add_row("Log level", config.log_level)
    table.add_row("LLM provider", config.llm.provider)
    table.add_row("Primary model", config.llm.primary_model)
    table.add_row("Fallback model", config.llm.fallback_model or "[dim]none[/dim]")
    table.add_row("API key", "✓" if manager.resolve_api_key(config) else "✗")
    table.add_row("Max gap (days)", str(config.grouping.max_gap_days))
    table.add_row("Series overrides", str(len(overrides.overrides)))

    console.print(table)


def _render_plan(report: PipelineReport) -> None:
    if not report.planned:
        console.print("[green]No LLM enrichments required; caches are up to date.[/green]")
        return

    for kind, title in (("episode", "Episode enrichments"), ("series", "Series enrichments")):
        planned = [call for call in report.planned if call.kind == kind]
        if not planned:
            continue

        table = Table(title=f"[bold]{title}[/bold] ({len(planned)})")
        table.add_column("ID", style="cyan")
        table.add_column("Cache key", style="dim")
        table.add_column("≈ Tokens", justify="right")
        for call in planned:
            table.add_row(call.item_id, call.cache_key, str(call.approx_tokens))
        console.print(table)

    total = sum(call.approx_tokens for call in report.planned)
    console.print(f"\n[bold]{len(report.planned)}[/bold] LLM call(s), ≈{total} prompt tokens")


def _render_summary(report: PipelineReport) -> None:
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Key", style="dim")
    table.add_column("Value", style="white")

    table.add_row("New episodes:", str(report.new_episodes))
    table.add_row("Episodes:", str(report.episodes))
    table.add_row("Series:", str(report.series))
    table.add_row("LLM calls:", f"{report.episode_calls} episode, {report.series_calls} series")
    table.add_row("Ledger entries:", str(len(report.errors)))
    console.print(table)


@app.command("run")
def run_command(
    ctx: typer.Context,
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Run every stage but skip filesystem writes"
    ),
    plan: bool = typer.Option(
        False, "--plan", help="List the LLM calls a run would make, then stop"
    ),
    since: str | None = typer.Option(
        None, "--since", help="Only ingest feed items published at or after this ISO date"
    ),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Output directory (default: config output_dir)"
    ),
    max_llm_calls: int | None = typer.Option(
        None, "--max-llm-calls", min=0, help="Maximum LLM calls per stage"
    ),
    force_llm: str | None = typer.Option(
        None, "--force-llm", help="Recompute LLM entries: all, episodes, series or comma-separated ids"
    ),
    offline: bool = typer.Option(
        False, "--offline", help="Skip the feed fetch and rebuild from stored raw episodes"
    ),
) -> None:
    """Run the catalog pipeline.

    Examples:
        podarc run --plan

        podarc run --dry-run --max-llm-calls 10

        podarc run --offline --force-llm series
    """
    try:
        manager, config = _load(ctx)
        overrides = manager.load_overrides()

        parser = None
        if not offline and config.feed_url:
            parser = RSSParser(config.feed_url)

        client = None
        if not plan:
            api_key = manager.resolve_api_key(config)
            if api_key:
                client = create_client(config.llm, api_key)
            else:
                console.print("[yellow]⚠[/yellow] No API key configured; LLM enrichment will be skipped")

        orchestrator = PipelineOrchestrator(
            store=ArtifactStore(output or config.output_dir),
            config=config,
            overrides=overrides.overrides,
            parser=parser,
            client=client,
        )
        options = PipelineOptions(
            dry_run=dry_run,
            plan=plan,
            since=since,
            max_llm_calls=max_llm_calls,
            force_llm=force_llm,
            offline=offline,
        )
        report = asyncio.run(orchestrator.run(options))

    except KeyboardInterrupt:
        console.print("\n[yellow]Cancelled by user[/yellow]")
        raise typer.Exit(code=130)
    except PodarcError as e:
        _fail(str(e))

    if plan:
        _render_plan(report)
        return

    if dry_run:
        console.print("[yellow]Dry run enabled; skipping filesystem writes.[/yellow]")
        for entry in report.errors:
            console.print(format_entry(entry), markup=False)

    _render_summary(report)
    if report.written:
        console.print("\n[bold green]✓ Complete![/bold green]")


@app.command("audit")
def audit_command(
    ctx: typer.Context,
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Catalog directory (default: config output_dir)"
    ),
) -> None:
    """Validate persisted artefacts and report every violation."""
    try:
        _, config = _load(ctx)
        violations = audit_artifacts(ArtifactStore(output or config.output_dir))
    except PodarcError as e:
        _fail(str(e))

    if not violations:
        console.print("[green]✓[/green] Catalog is valid")
        return

    table = Table(title=f"[bold red]{len(violations)} violation(s)[/bold red]")
    table.add_column("Scope", style="cyan")
    table.add_column("Item", style="white")
    table.add_column("Message")
    for violation in violations:
        table.add_row(violation.scope, violation.item_id, violation.message)
    console.print(table)
    raise typer.Exit(code=1)


@app.command("slugs")
def slugs_command(
    ctx: typer.Context,
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Catalog directory (default: config output_dir)"
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Compute slugs without writing"
    ),
) -> None:
    """Rebuild slugs and the slug registry from public artefacts."""
    try:
        _, config = _load(ctx)
        assignment = rebuild_slugs(ArtifactStore(output or config.output_dir), dry_run=dry_run)
    except PodarcError as e:
        _fail(str(e))

    console.print(
        f"[green]✓[/green] {len(assignment.series)} series and "
        f"{len(assignment.episodes)} episode slugs assigned"
    )


if __name__ == "__main__":
    app()
