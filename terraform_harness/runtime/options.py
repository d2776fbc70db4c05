"""Per-scenario terraform options."""

import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from terraform_harness.runtime.retry import DEFAULT_RETRYABLE_ERRORS


@dataclass(frozen=True)
class ScenarioConfig:
    """Everything needed to run terraform against one module directory.

    Instances are immutable: ``variables``, ``env_vars`` and
    ``retryable_errors`` are exposed as read-only mappings. Use
    ``with_variables`` or ``replace`` to derive a changed copy.
    """
    working_dir: Path
    variables: Mapping[str, Any] = field(default_factory=dict)
    no_color: bool = True
    max_retries: int = 0
    retry_interval: float = 0.0  # seconds, fixed between attempts
    var_files: Tuple[str, ...] = ()
    env_vars: Mapping[str, str] = field(default_factory=dict)
    command_timeout: int = 600
    retryable_errors: Mapping[str, str] = field(
        default_factory=lambda: dict(DEFAULT_RETRYABLE_ERRORS)
    )

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.retry_interval < 0:
            raise ValueError(f"retry_interval must be >= 0, got {self.retry_interval}")
        if self.command_timeout <= 0:
            raise ValueError(f"command_timeout must be > 0, got {self.command_timeout}")
        for name in self.variables:
            if not isinstance(name, str) or not name:
                raise ValueError(f"Invalid variable name: {name!r}")

        object.__setattr__(self, "working_dir", Path(self.working_dir))
        object.__setattr__(self, "var_files", tuple(self.var_files))
        object.__setattr__(self, "variables", MappingProxyType(dict(self.variables)))
        object.__setattr__(self, "env_vars", MappingProxyType(dict(self.env_vars)))
        object.__setattr__(
            self, "retryable_errors", MappingProxyType(dict(self.retryable_errors))
        )

    def with_variables(self, overrides: Optional[Mapping[str, Any]]) -> "ScenarioConfig":
        """Return a copy with ``overrides`` merged over the current variables."""
        merged: Dict[str, Any] = dict(self.variables)
        merged.update(overrides or {})
        return self.replace(variables=merged)

    def replace(self, **changes: Any) -> "ScenarioConfig":
        """Return a copy with the given fields changed."""
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "working_dir": str(self.working_dir),
            "variables": dict(self.variables),
            "no_color": self.no_color,
            "max_retries": self.max_retries,
            "retry_interval": self.retry_interval,
            "var_files": list(self.var_files),
            "command_timeout": self.command_timeout,
        }


def build_config(
    working_dir: Union[str, Path],
    variables: Optional[Mapping[str, Any]] = None,
    **kwargs: Any,
) -> ScenarioConfig:
    """Factory for a ScenarioConfig with keyword defaults."""
    return ScenarioConfig(working_dir=Path(working_dir), variables=dict(variables or {}), **kwargs)
