"""Scenario suite loading."""

import json
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from pydantic import ValidationError

from .schema import ScenarioSpec


class SuiteLoader:
    """Load scenario suites in JSONL format (one scenario per line)."""

    def __init__(self, suite_path: str):
        """
        Initialize suite loader.

        Args:
            suite_path: Path to JSONL suite file
        """
        self.suite_path = Path(suite_path)
        if not self.suite_path.exists():
            raise FileNotFoundError(f"Suite not found: {suite_path}")

    @property
    def base_dir(self) -> Path:
        """Directory that relative module paths resolve against."""
        return self.suite_path.resolve().parent

    def load(self) -> List[ScenarioSpec]:
        """
        Load and validate every scenario.

        Raises:
            ValueError: On invalid JSON, schema errors or duplicate scenario ids
        """
        specs: List[ScenarioSpec] = []
        seen = set()

        for line_num, data in self._read_jsonl():
            try:
                spec = ScenarioSpec.model_validate(data)
            except ValidationError as e:
                raise ValueError(f"Invalid scenario at line {line_num}:\n{e}") from e

            if spec.scenario_id in seen:
                raise ValueError(f"Duplicate scenario_id '{spec.scenario_id}' at line {line_num}")
            seen.add(spec.scenario_id)
            specs.append(spec)

        return specs

    def filter(
        self,
        scenario_ids: Optional[List[str]] = None,
        tags: Optional[List[str]] = None,
    ) -> List[ScenarioSpec]:
        """
        Load scenarios with filters applied.

        Args:
            scenario_ids: Keep only these scenarios
            tags: Keep scenarios that carry all of these tags

        Returns:
            Filtered list of ScenarioSpec objects
        """
        specs = self.load()
        if scenario_ids:
            unknown = set(scenario_ids) - {s.scenario_id for s in specs}
            if unknown:
                raise ValueError(f"Unknown scenario(s): {', '.join(sorted(unknown))}")
            specs = [s for s in specs if s.scenario_id in scenario_ids]
        if tags:
            specs = [s for s in specs if all(tag in s.tags for tag in tags)]
        return specs

    def _read_jsonl(self) -> Iterator[tuple]:
        """Yield ``(line_number, parsed_object)`` for non-empty lines."""
        with open(self.suite_path, 'r') as f:
            for line_num, line in enumerate(f, start=1):
                line = line.strip()
                if not line or line.startswith('//'):
                    continue
                try:
                    data: Dict[str, Any] = json.loads(line)
                except json.JSONDecodeError as e:
                    raise ValueError(f"Invalid JSON at line {line_num}: {e}") from e
                yield line_num, data


def load_suite(path: str, **filter_kwargs) -> List[ScenarioSpec]:
    """
    Load a scenario suite from a JSONL file.

    Args:
        path: Path to JSONL suite file
        **filter_kwargs: Optional ``scenario_ids`` and ``tags`` filters

    Returns:
        List of ScenarioSpec
    """
    loader = SuiteLoader(path)
    if filter_kwargs:
        return loader.filter(
            scenario_ids=filter_kwargs.get('scenario_ids'),
            tags=filter_kwargs.get('tags'),
        )
    return loader.load()
