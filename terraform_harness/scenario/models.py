"""Result dataclasses for scenario runs."""

from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field
from enum import Enum

from terraform_harness.errors import (
    ApplyFailedError,
    ErrorKind,
    ExecutionError,
    HarnessError,
    OutputNotFoundError,
    ScenarioAssertionError,
    TypeMismatchError,
)
from terraform_harness.runtime.outputs import OutputShape, OutputValue, select


class ScenarioState(str, Enum):
    """Lifecycle state of a scenario."""
    IDLE = "idle"
    INITIALIZED = "initialized"
    APPLIED = "applied"
    ASSERTED = "asserted"
    DESTROYED = "destroyed"


class StageStatus(str, Enum):
    """Status of a scenario stage."""
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class StageResult:
    """Result of a single scenario stage (init, apply, assert, destroy)."""
    stage: str
    status: StageStatus
    message: str = ""
    duration_seconds: float = 0.0
    attempts: int = 1
    raw_output: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        d = {
            "stage": self.stage,
            "status": self.status.value,
            "message": self.message,
            "duration_seconds": self.duration_seconds,
            "attempts": self.attempts,
        }
        if self.raw_output:
            d["output"] = self.raw_output
        return d


@dataclass
class ScenarioOutcome:
    """What happened in one scenario: outputs, stages and the terminal error."""
    scenario_id: str
    unique_id: str
    succeeded: bool = False
    outputs: Dict[str, OutputValue] = field(default_factory=dict)
    error: Optional[ErrorKind] = None
    error_message: str = ""
    state: ScenarioState = ScenarioState.IDLE
    stages: List[StageResult] = field(default_factory=list)
    destroy_count: int = 0
    variables: Dict[str, Any] = field(default_factory=dict)
    exception: Optional[BaseException] = field(default=None, repr=False)

    def scalar(self, name: str) -> str:
        """Read ``name`` as a scalar string."""
        return select(self.outputs, name, OutputShape.SCALAR).value  # type: ignore[return-value]

    def list(self, name: str) -> List[str]:
        """Read ``name`` as a list of strings."""
        return select(self.outputs, name, OutputShape.LIST).value  # type: ignore[return-value]

    def map(self, name: str) -> Dict[str, str]:
        """Read ``name`` as a string-to-string mapping."""
        return select(self.outputs, name, OutputShape.MAP).value  # type: ignore[return-value]

    def stage(self, name: str) -> Optional[StageResult]:
        """Return the last recorded result for stage ``name``."""
        for stage in reversed(self.stages):
            if stage.stage == name:
                return stage
        return None

    def record_error(self, error: BaseException) -> None:
        """Set the terminal error, unless one is already recorded."""
        if self.error is not None:
            return
        if isinstance(error, HarnessError):
            self.error = error.kind
        elif isinstance(error, AssertionError):
            self.error = ErrorKind.ASSERTION_FAILED
        else:
            self.error = ErrorKind.EXECUTION
        self.error_message = str(error)
        self.exception = error
        self.succeeded = False

    def raise_for_status(self) -> None:
        """Raise the terminal error of a failed scenario."""
        if self.succeeded:
            return
        exc = self.exception
        if isinstance(exc, (ExecutionError, ApplyFailedError, TypeMismatchError,
                            OutputNotFoundError, ScenarioAssertionError)):
            raise exc
        if self.error == ErrorKind.ASSERTION_FAILED:
            raise ScenarioAssertionError(self.error_message) from exc
        raise HarnessError(
            f"Scenario {self.scenario_id} failed: {self.error_message or 'unknown error'}"
        ) from exc

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "scenario_id": self.scenario_id,
            "unique_id": self.unique_id,
            "succeeded": self.succeeded,
            "state": self.state.value,
            "error": self.error.value if self.error else None,
            "error_message": self.error_message,
            "variables": self.variables,
            "outputs": {name: out.to_dict() for name, out in self.outputs.items()},
            "stages": [s.to_dict() for s in self.stages],
            "destroy_count": self.destroy_count,
        }


@dataclass
class SuiteReport:
    """Aggregated outcomes across a suite run."""
    suite: str
    outcomes: List[ScenarioOutcome] = field(default_factory=list)

    @property
    def passed(self) -> int:
        return sum(1 for o in self.outcomes if o.succeeded)

    @property
    def failed(self) -> int:
        return len(self.outcomes) - self.passed

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "suite": self.suite,
            "total": len(self.outcomes),
            "passed": self.passed,
            "failed": self.failed,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }
