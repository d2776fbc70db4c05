"""Terraform Harness - end-to-end conformance testing for terraform modules."""

__version__ = "0.1.0"

from . import errors
from . import runtime
from . import scenario
from . import suites

__all__ = [
    "errors",
    "runtime",
    "scenario",
    "suites",
]
