"""Static checks: terraform validate and terraform fmt -check."""

from typing import List, Optional

import typer
from rich.console import Console

from terraform_harness.config import HarnessSettings
from terraform_harness.errors import ExecutionError
from terraform_harness.runtime import ScenarioConfig, TerraformRuntime

console = Console()


def _runtime(terraform_bin: Optional[str]) -> TerraformRuntime:
    settings = HarnessSettings.from_env()
    return TerraformRuntime(terraform_bin or settings.terraform_bin)


def _report_failure(path: str, error: ExecutionError) -> None:
    console.print(f"[red]✗ {path}[/red]")
    output = (error.stdout + "\n" + error.stderr).strip()
    if output:
        console.print(output, markup=False, highlight=False)


def validate_command(
    paths: List[str] = typer.Argument(..., help="Module directories to validate"),
    backend: bool = typer.Option(
        False, "--backend/--no-backend", help="Configure the backend during init",
    ),
    terraform_bin: Optional[str] = typer.Option(None, "--terraform-bin", help="terraform executable"),
):
    """
    Run terraform init and validate in each directory.

    validate checks syntax and internal consistency only; invalid variable
    values are caught later, at plan or apply time.
    """
    runtime = _runtime(terraform_bin)
    failed = 0

    for path in paths:
        config = ScenarioConfig(working_dir=path)
        try:
            if backend:
                runtime.init(config)
            else:
                runtime.init(config, "-backend=false")
            runtime.validate(config)
        except ExecutionError as e:
            failed += 1
            _report_failure(path, e)
            continue
        console.print(f"[green]✓ {path}[/green]")

    if failed:
        console.print(f"\n[red]{failed} of {len(paths)} director(ies) failed validation[/red]")
        raise typer.Exit(code=1)


def fmt_check_command(
    paths: List[str] = typer.Argument(..., help="Directories to check"),
    terraform_bin: Optional[str] = typer.Option(None, "--terraform-bin", help="terraform executable"),
):
    """Check that terraform files are in canonical format (terraform fmt -check)."""
    runtime = _runtime(terraform_bin)
    failed = 0

    for path in paths:
        try:
            runtime.fmt_check(ScenarioConfig(working_dir=path))
        except ExecutionError as e:
            failed += 1
            _report_failure(path, e)
            continue
        console.print(f"[green]✓ {path}[/green]")

    if failed:
        console.print(f"\n[red]{failed} of {len(paths)} director(ies) need terraform fmt[/red]")
        raise typer.Exit(code=1)
