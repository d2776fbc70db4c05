"""List command for showing suite scenarios."""

from typing import List, Optional

import typer
from rich.console import Console

from terraform_harness.suites import SuiteLoader

console = Console()


def list_command(
    suite: str = typer.Argument(..., help="Path to JSONL suite file"),
    tags: Optional[List[str]] = typer.Option(None, "--tag", help="Filter by tags"),
):
    """List scenarios in a suite."""
    try:
        specs = SuiteLoader(suite).filter(tags=tags)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)

    console.print(f"[bold]Found {len(specs)} scenarios:[/bold]\n")

    for i, spec in enumerate(specs, 1):
        console.print(f"[cyan]{i}. {spec.scenario_id}[/cyan]")
        console.print(f"   Module: {spec.module_dir}")
        if spec.variables:
            console.print(f"   Variables: {', '.join(f'{k}={v}' for k, v in spec.variables.items())}")
        console.print(f"   Checks: {len(spec.checks)}")
        if spec.description:
            console.print(f"   {spec.description}")
        console.print()
