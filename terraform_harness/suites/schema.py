"""Scenario suite schema definitions and validation."""

from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from terraform_harness.scenario.checks import OutputCheck, checks_to_assertions
from terraform_harness.scenario.runner import ScenarioRequest


class ScenarioSpec(BaseModel):
    """Schema for a single scenario in a suite file."""

    scenario_id: str = Field(..., pattern=r"^[a-z0-9][a-z0-9_-]*$", description="Unique scenario name")
    module_dir: str = Field(..., min_length=1, description="Module directory, relative to the suite file")
    description: str = Field("", description="What the scenario covers")
    variables: Dict[str, Any] = Field(default_factory=dict, description="Module input variables")
    max_retries: Optional[int] = Field(None, ge=0, description="Retry budget for transient errors")
    retry_interval: Optional[float] = Field(None, ge=0, description="Seconds between retries")
    tags: List[str] = Field(default_factory=list)
    checks: List[OutputCheck] = Field(default_factory=list, description="Output assertions")

    @field_validator('variables')
    @classmethod
    def validate_variable_names(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        """Variable names must be non-empty."""
        for name in v:
            if not name.strip():
                raise ValueError("variable names must be non-empty")
        return v

    def resolve_module_dir(self, base_dir: Path) -> Path:
        """Resolve ``module_dir`` against the suite file's directory."""
        path = Path(self.module_dir)
        return path if path.is_absolute() else (base_dir / path)

    def to_request(self, base_dir: Path) -> ScenarioRequest:
        """Convert to a runner request."""
        return ScenarioRequest(
            module_dir=self.resolve_module_dir(base_dir),
            variables=dict(self.variables),
            assertions=checks_to_assertions(self.checks) if self.checks else None,
            scenario_id=self.scenario_id,
            max_retries=self.max_retries,
            retry_interval=self.retry_interval,
        )
