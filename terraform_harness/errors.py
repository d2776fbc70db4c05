"""Exception taxonomy for scenario execution."""

from enum import Enum
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from terraform_harness.runtime.terraform import CommandResult


class ErrorKind(str, Enum):
    """Terminal error category recorded on a scenario outcome."""
    EXECUTION = "execution_error"
    TYPE_MISMATCH = "type_mismatch"
    NOT_FOUND = "not_found"
    APPLY_FAILED = "apply_failed"
    ASSERTION_FAILED = "assertion_failed"


class HarnessError(Exception):
    """Base class for all harness errors."""

    kind: ErrorKind = ErrorKind.EXECUTION


class ExecutionError(HarnessError):
    """The terraform binary exited non-zero (or could not be run)."""

    kind = ErrorKind.EXECUTION

    def __init__(self, command: str, result: "CommandResult"):
        self.command = command
        self.result = result
        super().__init__(self._format())

    @property
    def stderr(self) -> str:
        return self.result.stderr

    @property
    def stdout(self) -> str:
        return self.result.stdout

    @property
    def returncode(self) -> int:
        return self.result.returncode

    def _format(self) -> str:
        message = f"terraform {self.command} failed with exit code {self.result.returncode}"
        # terraform writes diagnostics to both streams
        output = self.result.stderr.strip() or self.result.stdout.strip()
        if output:
            message += f"\n{output}"
        return message


class TypeMismatchError(HarnessError):
    """An output was requested with a shape other than its declared type."""

    kind = ErrorKind.TYPE_MISMATCH

    def __init__(self, name: str, expected: str, declared_type: object):
        self.name = name
        self.expected = expected
        self.declared_type = declared_type
        super().__init__(
            f"Output '{name}' has declared type {declared_type!r}, "
            f"which cannot be read as {expected}"
        )


class OutputNotFoundError(HarnessError):
    """A requested output is not declared by the module."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, name: str, available: Optional[list] = None):
        self.name = name
        self.available = sorted(available or [])
        detail = f" (available: {', '.join(self.available)})" if self.available else ""
        super().__init__(f"Output '{name}' not found{detail}")


class ApplyFailedError(HarnessError):
    """terraform apply failed terminally, after any retries."""

    kind = ErrorKind.APPLY_FAILED

    def __init__(self, last_error: ExecutionError, attempts: int):
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(
            f"apply failed after {attempts} attempt(s): {last_error}"
        )

    @property
    def stderr(self) -> str:
        return self.last_error.stderr


class ScenarioAssertionError(HarnessError):
    """A scenario assertion did not hold. Not a system fault."""

    kind = ErrorKind.ASSERTION_FAILED
