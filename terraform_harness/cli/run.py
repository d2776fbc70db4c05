"""CLI command for running scenario suites."""

import json
from pathlib import Path
from typing import List, Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from terraform_harness.config import HarnessSettings
from terraform_harness.logging import ConsoleLogger, FileLogger, LogLevel, MultiLogger
from terraform_harness.scenario import ScenarioRunner, SuiteReport
from terraform_harness.suites import SuiteLoader

console = Console()


def run_command(
    suite: str = typer.Argument(..., help="Path to JSONL suite file"),
    scenario: Optional[List[str]] = typer.Option(
        None, "--scenario", "-s", help="Run only this scenario (can be specified multiple times)",
    ),
    tags: Optional[List[str]] = typer.Option(
        None, "--tag", help="Filter by tags (can be specified multiple times)",
    ),
    parallel: int = typer.Option(1, "--parallel", "-j", help="Number of scenarios to run concurrently"),
    max_retries: Optional[int] = typer.Option(
        None, "--max-retries", min=0, help="Retry budget for transient errors (default from settings)",
    ),
    retry_interval: Optional[float] = typer.Option(
        None, "--retry-interval", min=0, help="Seconds between retries (default from settings)",
    ),
    isolate: bool = typer.Option(
        False,
        "--isolate/--no-isolate",
        help="Run each scenario in a temporary copy of the module tree",
    ),
    isolation_root: Optional[str] = typer.Option(
        None,
        "--isolation-root",
        help="Tree to copy when isolating (use the repository root when modules reference ../..)",
    ),
    terraform_bin: Optional[str] = typer.Option(None, "--terraform-bin", help="terraform executable"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Write a JSON report to this file"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Append JSON-lines events to this file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug events"),
):
    """
    Run the scenarios of a suite: init, apply, check outputs, destroy.

    Examples:

        terraform-harness run scenarios/digitalocean_droplets.jsonl

        terraform-harness run scenarios/digitalocean_droplets.jsonl -s minimal -j 3 --isolate --isolation-root ..
    """
    try:
        specs = SuiteLoader(suite).filter(scenario_ids=scenario, tags=tags)
    except FileNotFoundError:
        console.print(f"[red]Error: Suite not found: {suite}[/red]")
        raise typer.Exit(code=1)
    except ValueError as e:
        console.print(f"[red]Error loading suite: {e}[/red]")
        raise typer.Exit(code=1)

    if not specs:
        console.print("[red]No scenarios found matching the filters[/red]")
        raise typer.Exit(code=1)

    settings = HarnessSettings.from_env()
    if terraform_bin:
        settings.terraform_bin = terraform_bin

    level = LogLevel.DEBUG if verbose else LogLevel.INFO
    event_logger = ConsoleLogger(min_level=level)
    if log_file:
        event_logger = MultiLogger(event_logger, FileLogger(log_file, min_level=LogLevel.DEBUG))

    runner = ScenarioRunner(
        settings=settings,
        event_logger=event_logger,
        isolate=isolate,
        isolation_root=isolation_root,
    )

    base_dir = Path(suite).resolve().parent
    requests = []
    for spec in specs:
        request = spec.to_request(base_dir)
        if max_retries is not None:
            request.max_retries = max_retries
        if retry_interval is not None:
            request.retry_interval = retry_interval
        requests.append(request)

    rprint(f"[bold]Running {len(requests)} scenario(s) from:[/bold] {suite}")
    if parallel > 1:
        rprint(f"[bold]Parallelism:[/bold] {parallel} workers")

    report = SuiteReport(suite=suite)
    try:
        report.outcomes = runner.run_many(requests, parallel=parallel)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)

    table = Table(title="Scenario results")
    table.add_column("Scenario", style="cyan", no_wrap=True)
    table.add_column("Result")
    table.add_column("Error")
    table.add_column("Destroyed", justify="center")
    for outcome in report.outcomes:
        status = "[green]passed[/green]" if outcome.succeeded else "[red]failed[/red]"
        error = outcome.error_message.splitlines()[0] if outcome.error_message else ""
        destroyed = "yes" if outcome.destroy_count else "-"
        table.add_row(outcome.scenario_id, status, error, destroyed)
    console.print(table)

    for outcome in report.outcomes:
        if not outcome.succeeded and outcome.error_message:
            console.print(f"\n[bold red]{outcome.scenario_id}[/bold red]")
            console.print(outcome.error_message, markup=False, highlight=False)

    console.print(f"\n[bold]Summary:[/bold] {report.passed}/{len(report.outcomes)} passed")

    if output:
        output_path = Path(output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w") as f:
            json.dump(report.to_dict(), f, indent=2)
        console.print(f"[green]Report saved to:[/green] {output_path}")

    if report.failed:
        raise typer.Exit(code=1)
