"""Harness settings with environment overrides."""

import os
from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping, Optional

ENV_PREFIX = "TF_HARNESS_"


@dataclass
class HarnessSettings:
    """Defaults applied to every scenario unless overridden."""
    terraform_bin: str = "terraform"
    command_timeout: int = 600
    max_retries: int = 3
    retry_interval: float = 10.0
    no_color: bool = True
    name_variable: Optional[str] = "environment"
    name_prefix: str = "test"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "HarnessSettings":
        """
        Build settings from ``TF_HARNESS_*`` environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ``

        Returns:
            HarnessSettings with any variables that are set applied
        """
        environ = os.environ if environ is None else environ
        values: Dict[str, Any] = {}

        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            values[f.name] = _coerce(f.name, raw, f.default)

        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _coerce(name: str, raw: str, default: Any) -> Any:
    """Convert an environment string to the type of the field default."""
    if isinstance(default, bool):
        lowered = raw.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
        raise ValueError(f"{ENV_PREFIX}{name.upper()} must be a boolean, got {raw!r}")
    try:
        if isinstance(default, int):
            return int(raw)
        if isinstance(default, float):
            return float(raw)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}{name.upper()} must be a number, got {raw!r}") from None
    return raw
