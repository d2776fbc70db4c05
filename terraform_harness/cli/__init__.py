"""Command-line interface for terraform-harness."""

import logging

import typer

from terraform_harness.cli.run import run_command
from terraform_harness.cli.check import validate_command, fmt_check_command
from terraform_harness.cli.list import list_command

app = typer.Typer(help="Terraform Harness - end-to-end conformance tests for terraform modules")

app.command(name="run")(run_command)
app.command(name="validate")(validate_command)
app.command(name="fmt-check")(fmt_check_command)
app.command(name="list")(list_command)


def main():
    """Main CLI entry point."""
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
    app()


__all__ = ["app", "main"]
