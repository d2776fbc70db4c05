"""Declarative assertions over scenario outputs."""

import re
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence

from pydantic import BaseModel, Field, model_validator

from terraform_harness.runtime.outputs import OutputShape
from terraform_harness.scenario.models import ScenarioOutcome

IP_ADDRESS_PATTERN = re.compile(r"^(\d{1,3}\.){3}\d{1,3}$")


class CheckRule(str, Enum):
    """What an OutputCheck asserts."""
    NOT_EMPTY = "not_empty"
    IP_ADDRESS = "ip_address"
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    MATCHES = "matches"


_NEEDS_VALUE = {CheckRule.EQUALS, CheckRule.NOT_EQUALS, CheckRule.MATCHES}


class OutputCheck(BaseModel):
    """One assertion about a module output."""

    output: str = Field(..., min_length=1, description="Output name")
    rule: CheckRule = Field(..., description="Assertion to apply")
    shape: OutputShape = Field(OutputShape.SCALAR, description="Shape the output must have")
    key: Optional[str] = Field(None, description="Entry to check inside a map output")
    value: Optional[str] = Field(None, description="Expected value or regex")
    description: Optional[str] = Field(None, description="Message shown on failure")

    @model_validator(mode="after")
    def validate_rule_arguments(self) -> "OutputCheck":
        """Reject checks that cannot be evaluated."""
        if self.rule in _NEEDS_VALUE and self.value is None:
            raise ValueError(f"rule '{self.rule.value}' requires a value")
        if self.key is not None and self.shape != OutputShape.MAP:
            raise ValueError("key is only valid for map outputs")
        if self.rule == CheckRule.MATCHES:
            try:
                re.compile(self.value)  # type: ignore[arg-type]
            except re.error as e:
                raise ValueError(f"invalid regex {self.value!r}: {e}") from e
        return self

    @property
    def target(self) -> str:
        return f"{self.output}[{self.key!r}]" if self.key is not None else self.output

    def evaluate(self, outcome: ScenarioOutcome) -> None:
        """
        Apply the check.

        Raises:
            AssertionError: If the check does not hold
            TypeMismatchError: If the output has a different shape
            OutputNotFoundError: If the output is not declared
        """
        actual = self._resolve(outcome)
        label = self.description or f"{self.target} {self.rule.value}"

        if self.rule == CheckRule.NOT_EMPTY:
            if len(actual) == 0:
                raise AssertionError(f"{label}: {self.target} is empty")
        elif self.rule == CheckRule.IP_ADDRESS:
            values = actual if isinstance(actual, list) else [actual]
            if not values:
                raise AssertionError(f"{label}: {self.target} is empty")
            for item in values:
                if not (isinstance(item, str) and IP_ADDRESS_PATTERN.match(item)):
                    raise AssertionError(f"{label}: {item!r} is not an IP address")
        elif self.rule == CheckRule.EQUALS:
            if actual != self.value:
                raise AssertionError(f"{label}: expected {self.value!r}, got {actual!r}")
        elif self.rule == CheckRule.NOT_EQUALS:
            if actual == self.value:
                raise AssertionError(f"{label}: expected anything but {self.value!r}")
        elif self.rule == CheckRule.MATCHES:
            if not (isinstance(actual, str) and re.search(self.value, actual)):  # type: ignore[arg-type]
                raise AssertionError(f"{label}: {actual!r} does not match {self.value!r}")

    def _resolve(self, outcome: ScenarioOutcome) -> Any:
        if self.shape == OutputShape.LIST:
            return outcome.list(self.output)
        if self.shape == OutputShape.MAP:
            mapping = outcome.map(self.output)
            if self.key is None:
                return mapping
            if self.key not in mapping:
                raise AssertionError(
                    f"{self.output} has no key {self.key!r} (keys: {', '.join(sorted(mapping))})"
                )
            return mapping[self.key]
        return outcome.scalar(self.output)


def checks_to_assertions(checks: Sequence[OutputCheck]) -> Callable[[ScenarioOutcome], None]:
    """Combine checks into an assertions callable for ScenarioRunner.

    Every check runs; failures are collected into a single AssertionError so
    one report lists all of them.
    """
    def assertions(outcome: ScenarioOutcome) -> None:
        failures: List[str] = []
        for check in checks:
            try:
                check.evaluate(outcome)
            except AssertionError as e:
                failures.append(str(e))
        if failures:
            raise AssertionError("\n".join(failures))

    return assertions
