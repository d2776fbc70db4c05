"""Typed extraction of terraform outputs."""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Union

from terraform_harness.errors import OutputNotFoundError, TypeMismatchError
from terraform_harness.runtime.options import ScenarioConfig
from terraform_harness.runtime.terraform import TerraformRuntime

logger = logging.getLogger(__name__)


class OutputShape(str, Enum):
    """Shape an output value can be read as."""
    SCALAR = "scalar"
    LIST = "list"
    MAP = "map"


_SCALAR_TYPES = {"string", "number", "bool"}
_LIST_TYPES = {"list", "set", "tuple"}
_MAP_TYPES = {"map", "object"}


@dataclass(frozen=True)
class OutputValue:
    """A single extracted output, tagged with its shape."""
    name: str
    shape: OutputShape
    value: Union[str, List[str], Dict[str, str]]
    declared_type: Any = None
    sensitive: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, masking sensitive values."""
        return {
            "name": self.name,
            "shape": self.shape.value,
            "value": "<sensitive>" if self.sensitive else self.value,
            "declared_type": self.declared_type,
        }


def stringify(value: Any) -> str:
    """Render a terraform value the way terraform prints it in strings."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"), sort_keys=True)


def shape_of(declared_type: Any, value: Any) -> OutputShape:
    """
    Determine the natural shape of an output.

    Args:
        declared_type: The ``type`` entry from ``terraform output -json``
        value: The output value, used when the type is missing or dynamic

    Returns:
        OutputShape
    """
    kind = declared_type[0] if isinstance(declared_type, list) and declared_type else declared_type
    if kind in _SCALAR_TYPES:
        return OutputShape.SCALAR
    if kind in _LIST_TYPES:
        return OutputShape.LIST
    if kind in _MAP_TYPES:
        return OutputShape.MAP

    if isinstance(value, list):
        return OutputShape.LIST
    if isinstance(value, dict):
        return OutputShape.MAP
    return OutputShape.SCALAR


def to_output_value(name: str, entry: Mapping[str, Any]) -> OutputValue:
    """Convert one entry of ``terraform output -json`` into an OutputValue."""
    declared_type = entry.get("type")
    raw = entry.get("value")
    shape = shape_of(declared_type, raw)

    if shape == OutputShape.LIST:
        value: Union[str, List[str], Dict[str, str]] = [stringify(v) for v in (raw or [])]
    elif shape == OutputShape.MAP:
        value = {str(k): stringify(v) for k, v in (raw or {}).items()}
    else:
        value = stringify(raw)

    return OutputValue(
        name=name,
        shape=shape,
        value=value,
        declared_type=declared_type,
        sensitive=bool(entry.get("sensitive", False)),
    )


def parse_outputs(document: Mapping[str, Any]) -> Dict[str, OutputValue]:
    """Convert a full ``terraform output -json`` document. Omits nothing, adds nothing."""
    return {name: to_output_value(name, entry) for name, entry in document.items()}


def select(outputs: Mapping[str, OutputValue], name: str, shape: OutputShape) -> OutputValue:
    """
    Pick ``name`` from already-extracted outputs and check its shape.

    Raises:
        OutputNotFoundError: If the module does not declare ``name``
        TypeMismatchError: If the output is not of ``shape``
    """
    if name not in outputs:
        raise OutputNotFoundError(name, list(outputs))
    output = outputs[name]
    shape = OutputShape(shape)
    if output.shape != shape:
        raise TypeMismatchError(name, shape.value, output.declared_type)
    return output


class OutputExtractor:
    """Reads outputs of an applied module through ``terraform output -json``."""

    def __init__(self, runtime: TerraformRuntime, config: ScenarioConfig):
        self.runtime = runtime
        self.config = config

    def extract_all(self) -> Dict[str, OutputValue]:
        """Extract every declared output in its natural shape."""
        outputs = parse_outputs(self.runtime.output_json(self.config))
        logger.debug(f"Extracted {len(outputs)} output(s) from {self.config.working_dir}")
        return outputs

    def extract(self, name: str, shape: OutputShape) -> OutputValue:
        """Extract a single output, failing fast on a shape mismatch."""
        return select(self.extract_all(), name, shape)

    def scalar(self, name: str) -> str:
        return self.extract(name, OutputShape.SCALAR).value  # type: ignore[return-value]

    def list(self, name: str) -> List[str]:
        return self.extract(name, OutputShape.LIST).value  # type: ignore[return-value]

    def map(self, name: str) -> Dict[str, str]:
        return self.extract(name, OutputShape.MAP).value  # type: ignore[return-value]
