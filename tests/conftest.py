"""Shared fixtures: a scripted stand-in for the terraform binary."""

import json
import subprocess
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from terraform_harness.config import HarnessSettings
from terraform_harness.runtime import TerraformRuntime
from terraform_harness.scenario import ScenarioRunner


class FakeTerraform:
    """Replaces ``subprocess.run`` and answers terraform invocations.

    Responses are queued per subcommand; anything unscripted succeeds with
    empty output, except ``output`` which returns ``self.outputs`` as JSON.
    """

    def __init__(self):
        self.calls: List[Dict[str, Any]] = []
        self.responses: Dict[str, List[Any]] = defaultdict(list)
        self.outputs: Dict[str, Any] = {}

    def respond(self, subcommand: str, returncode: int = 0, stdout: str = "", stderr: str = "") -> None:
        self.responses[subcommand].append((returncode, stdout, stderr))

    def raise_on(self, subcommand: str, exc: BaseException) -> None:
        self.responses[subcommand].append(exc)

    def set_outputs(self, **outputs: Any) -> None:
        self.outputs = dict(outputs)

    def commands(self) -> List[str]:
        return [call["args"][1] for call in self.calls]

    def calls_for(self, subcommand: str) -> List[Dict[str, Any]]:
        return [call for call in self.calls if call["args"][1] == subcommand]

    def __call__(self, cmd, cwd=None, capture_output=False, text=False, env=None, timeout=None):
        self.calls.append({"args": list(cmd), "cwd": Path(cwd) if cwd else None, "env": env})
        subcommand = cmd[1]

        if self.responses[subcommand]:
            response = self.responses[subcommand].pop(0)
            if isinstance(response, BaseException):
                raise response
            returncode, stdout, stderr = response
        elif subcommand == "output":
            returncode, stdout, stderr = 0, json.dumps(self.outputs), ""
        else:
            returncode, stdout, stderr = 0, "", ""

        return subprocess.CompletedProcess(cmd, returncode, stdout, stderr)


def tf_output(value: Any, type_: Any, sensitive: bool = False) -> Dict[str, Any]:
    """One entry of a ``terraform output -json`` document."""
    return {"sensitive": sensitive, "type": type_, "value": value}


@pytest.fixture
def fake_terraform(monkeypatch) -> FakeTerraform:
    fake = FakeTerraform()
    monkeypatch.setattr("terraform_harness.runtime.terraform.subprocess.run", fake)
    return fake


@pytest.fixture
def module_dir(tmp_path: Path) -> Path:
    path = tmp_path / "examples" / "minimal"
    path.mkdir(parents=True)
    (path / "main.tf").write_text('module "droplet" {\n  source = "../.."\n}\n')
    return path


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def runner(fake_terraform, sleeps) -> ScenarioRunner:
    settings = HarnessSettings(max_retries=2, retry_interval=0.5)
    return ScenarioRunner(runtime=TerraformRuntime(), settings=settings, sleep=sleeps.append)


@pytest.fixture
def droplet_outputs() -> Dict[str, Any]:
    """Outputs of a healthy load-balanced deployment."""
    return {
        "droplet_ip": tf_output("203.0.113.10", "string"),
        "load_balancer_ip": tf_output("203.0.113.50", "string"),
        "droplet_public_ips": tf_output(
            {"web-1": "203.0.113.10", "web-2": "203.0.113.11", "web-3": "203.0.113.12"},
            ["map", "string"],
        ),
        "droplet_ids": tf_output(["101", "102", "103"], ["list", "string"]),
        "summary": tf_output(
            {
                "droplets_count": 3,
                "load_balancer_created": True,
                "droplet_public_ips": {"web-1": "203.0.113.10"},
                "load_balancer_ip": "203.0.113.50",
            },
            ["object", {
                "droplets_count": "number",
                "load_balancer_created": "bool",
                "droplet_public_ips": ["map", "string"],
                "load_balancer_ip": "string",
            }],
        ),
    }
