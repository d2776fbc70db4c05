"""Scenario suite files."""

from .schema import ScenarioSpec
from .loader import SuiteLoader, load_suite

__all__ = [
    'ScenarioSpec',
    'SuiteLoader',
    'load_suite',
]
