"""Terraform lifecycle driver."""

import json
import logging
import os
import subprocess
import threading
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from terraform_harness.errors import ExecutionError
from terraform_harness.runtime.options import ScenarioConfig

logger = logging.getLogger(__name__)


class TerraformCommand(str, Enum):
    """Terraform subcommands the driver knows how to invoke."""
    INIT = "init"
    VALIDATE = "validate"
    PLAN = "plan"
    APPLY = "apply"
    DESTROY = "destroy"
    FORMAT = "fmt"
    OUTPUT = "output"


# Commands that accept -var / -var-file
_VAR_COMMANDS = {TerraformCommand.PLAN, TerraformCommand.APPLY, TerraformCommand.DESTROY}

# Commands that need a prior successful init in the same directory
_REQUIRES_INIT = {TerraformCommand.PLAN, TerraformCommand.APPLY}


@dataclass(frozen=True)
class CommandResult:
    """Result of a single terraform invocation."""
    command: str
    args: Tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str
    duration_seconds: float

    @property
    def success(self) -> bool:
        return self.returncode == 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "command": self.command,
            "args": list(self.args),
            "returncode": self.returncode,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "duration_seconds": self.duration_seconds,
        }


def format_variable(value: Any) -> str:
    """Render a variable value for ``-var name=value``.

    Strings pass through verbatim; everything else is JSON, which terraform
    accepts for numbers, bools, lists and maps.
    """
    if isinstance(value, str):
        return value
    return json.dumps(value)


class TerraformRuntime:
    """Runs terraform subcommands for a ScenarioConfig.

    Every non-zero exit raises ``ExecutionError`` with the captured output
    attached. A single runtime may be shared between threads.
    """

    def __init__(self, terraform_bin: str = "terraform"):
        """
        Initialize Terraform runtime.

        Args:
            terraform_bin: Name or path of the terraform executable
        """
        self.terraform_bin = terraform_bin
        self._initialized: Set[Path] = set()
        self._lock = threading.Lock()

    def run(
        self,
        command: TerraformCommand,
        config: ScenarioConfig,
        extra_args: Sequence[str] = (),
    ) -> CommandResult:
        """
        Run a terraform subcommand.

        Args:
            command: Subcommand to run
            config: Scenario options (directory, variables, flags)
            extra_args: Additional arguments appended after the generated ones

        Returns:
            CommandResult of the successful invocation

        Raises:
            ExecutionError: On non-zero exit, timeout, missing binary, or when
                plan/apply is requested before init
        """
        command = TerraformCommand(command)

        if command in _REQUIRES_INIT and not self.is_initialized(config.working_dir):
            raise ExecutionError(command.value, CommandResult(
                command=command.value,
                args=(),
                returncode=-1,
                stdout="",
                stderr=f"terraform init must run in {config.working_dir} before {command.value}",
                duration_seconds=0.0,
            ))

        args = self.build_args(command, config) + list(extra_args)
        result = self._run_command(command, args, config)

        if not result.success:
            raise ExecutionError(command.value, result)

        if command == TerraformCommand.INIT:
            with self._lock:
                self._initialized.add(config.working_dir.resolve())
        return result

    def build_args(self, command: TerraformCommand, config: ScenarioConfig) -> List[str]:
        """Build the argument list (without the binary) for ``command``."""
        args = [command.value]

        if command == TerraformCommand.INIT:
            args.append("-input=false")
        elif command == TerraformCommand.PLAN:
            args.append("-input=false")
        elif command in (TerraformCommand.APPLY, TerraformCommand.DESTROY):
            args.extend(["-input=false", "-auto-approve"])
        elif command == TerraformCommand.FORMAT:
            args.append("-check")
        elif command == TerraformCommand.OUTPUT:
            args.append("-json")

        if command in _VAR_COMMANDS:
            for name, value in config.variables.items():
                args.extend(["-var", f"{name}={format_variable(value)}"])
            for var_file in config.var_files:
                args.extend(["-var-file", var_file])

        if config.no_color and command != TerraformCommand.FORMAT:
            args.append("-no-color")

        return args

    def is_initialized(self, working_dir: Path) -> bool:
        """Whether init has run for ``working_dir`` (here or beforehand)."""
        with self._lock:
            if Path(working_dir).resolve() in self._initialized:
                return True
        return (Path(working_dir) / ".terraform").is_dir()

    def init(self, config: ScenarioConfig, *extra_args: str) -> CommandResult:
        """Run terraform init."""
        return self.run(TerraformCommand.INIT, config, extra_args)

    def validate(self, config: ScenarioConfig) -> CommandResult:
        """Run terraform validate. Variables are not passed to validate."""
        return self.run(TerraformCommand.VALIDATE, config)

    def plan(self, config: ScenarioConfig, out_file: Optional[str] = None) -> CommandResult:
        """Run terraform plan, optionally saving the plan to ``out_file``."""
        extra = [f"-out={out_file}"] if out_file else []
        return self.run(TerraformCommand.PLAN, config, extra)

    def apply(self, config: ScenarioConfig) -> CommandResult:
        """Run terraform apply -auto-approve."""
        return self.run(TerraformCommand.APPLY, config)

    def destroy(self, config: ScenarioConfig) -> CommandResult:
        """
        Run terraform destroy -auto-approve.

        A directory that was never initialized cannot hold state created by
        this harness, so destroy is a successful no-op there.
        """
        if not self.is_initialized(config.working_dir):
            logger.debug(f"Skipping destroy in uninitialized directory {config.working_dir}")
            return CommandResult(
                command=TerraformCommand.DESTROY.value,
                args=(),
                returncode=0,
                stdout="Nothing to destroy: directory was never initialized",
                stderr="",
                duration_seconds=0.0,
            )
        return self.run(TerraformCommand.DESTROY, config)

    def fmt_check(self, config: ScenarioConfig) -> CommandResult:
        """Run terraform fmt -check. Fails if any file would be rewritten."""
        return self.run(TerraformCommand.FORMAT, config)

    def output_json(self, config: ScenarioConfig) -> Dict[str, Any]:
        """
        Get all terraform outputs.

        Returns:
            Parsed ``terraform output -json`` document
        """
        result = self.run(TerraformCommand.OUTPUT, config)
        text = result.stdout.strip()
        if not text:
            return {}
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise ExecutionError(TerraformCommand.OUTPUT.value, CommandResult(
                command=result.command,
                args=result.args,
                returncode=-1,
                stdout=result.stdout,
                stderr=f"Could not parse output JSON: {e}",
                duration_seconds=result.duration_seconds,
            )) from e

    def init_and_apply(self, config: ScenarioConfig) -> CommandResult:
        """Run init then apply."""
        self.init(config)
        return self.apply(config)

    def version(self) -> Optional[str]:
        """Return the terraform version string, or None if unavailable."""
        try:
            result = subprocess.run(
                [self.terraform_bin, "version", "-json"],
                capture_output=True,
                text=True,
                timeout=30,
            )
        except (FileNotFoundError, subprocess.TimeoutExpired):
            return None
        if result.returncode != 0:
            return None
        try:
            return json.loads(result.stdout).get("terraform_version")
        except json.JSONDecodeError:
            return result.stdout.strip().split("\n")[0] or None

    def _run_command(
        self,
        command: TerraformCommand,
        args: List[str],
        config: ScenarioConfig,
    ) -> CommandResult:
        """Invoke the binary in the scenario's working directory."""
        cmd = [self.terraform_bin] + args
        env = os.environ.copy()
        env.update(config.env_vars)
        timeout = config.command_timeout

        logger.debug(f"Running {' '.join(cmd)} in {config.working_dir}")
        start = time.monotonic()
        try:
            proc = subprocess.run(
                cmd,
                cwd=config.working_dir,
                capture_output=True,
                text=True,
                env=env,
                timeout=timeout,
            )
            returncode, stdout, stderr = proc.returncode, proc.stdout, proc.stderr
        except subprocess.TimeoutExpired:
            returncode, stdout, stderr = -1, "", f"Command timed out after {timeout}s"
        except FileNotFoundError as e:
            # missing binary or missing working directory
            returncode, stdout, stderr = -1, "", f"Could not run {self.terraform_bin}: {e}"

        duration = time.monotonic() - start
        logger.debug(f"terraform {command.value} exited {returncode} after {duration:.1f}s")
        return CommandResult(
            command=command.value,
            args=tuple(cmd),
            returncode=returncode,
            stdout=stdout or "",
            stderr=stderr or "",
            duration_seconds=duration,
        )
