"""Scenario execution: runner, outcomes and output checks."""

from .models import ScenarioOutcome, ScenarioState, StageResult, StageStatus, SuiteReport
from .runner import ScenarioRunner, ScenarioRequest
from .checks import CheckRule, OutputCheck, checks_to_assertions, IP_ADDRESS_PATTERN

__all__ = [
    "ScenarioOutcome",
    "ScenarioState",
    "StageResult",
    "StageStatus",
    "SuiteReport",
    "ScenarioRunner",
    "ScenarioRequest",
    "CheckRule",
    "OutputCheck",
    "checks_to_assertions",
    "IP_ADDRESS_PATTERN",
]
