"""Scenario orchestration: init, apply, assert, guaranteed destroy."""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from terraform_harness.config import HarnessSettings
from terraform_harness.errors import (
    ApplyFailedError,
    ExecutionError,
    HarnessError,
    ScenarioAssertionError,
)
from terraform_harness.logging import Logger, NullLogger
from terraform_harness.runtime.options import ScenarioConfig
from terraform_harness.runtime.outputs import OutputExtractor
from terraform_harness.runtime.retry import ErrorMatcher, RetryPolicy, matchers_from_mapping
from terraform_harness.runtime.terraform import TerraformRuntime
from terraform_harness.runtime.workspace import IsolatedWorkspace, unique_id
from terraform_harness.scenario.models import (
    ScenarioOutcome,
    ScenarioState,
    StageResult,
    StageStatus,
)

logger = logging.getLogger(__name__)

Assertions = Callable[[ScenarioOutcome], None]


@dataclass
class ScenarioRequest:
    """One scenario to hand to ``ScenarioRunner.run_many``."""
    module_dir: Union[str, Path]
    variables: Dict[str, Any] = field(default_factory=dict)
    assertions: Optional[Assertions] = None
    scenario_id: Optional[str] = None
    max_retries: Optional[int] = None
    retry_interval: Optional[float] = None


class ScenarioRunner:
    """Runs scenarios against terraform modules.

    Each scenario moves through ``IDLE -> INITIALIZED -> APPLIED -> ASSERTED
    -> DESTROYED``. Teardown is registered before init and runs on every exit
    path exactly once; it only calls ``terraform destroy`` when init
    succeeded, since nothing can exist before that.
    """

    def __init__(
        self,
        runtime: Optional[TerraformRuntime] = None,
        settings: Optional[HarnessSettings] = None,
        event_logger: Optional[Logger] = None,
        isolate: bool = False,
        isolation_root: Optional[Union[str, Path]] = None,
        extra_retryable_errors: Optional[Mapping[str, str]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize scenario runner.

        Args:
            runtime: Lifecycle driver; defaults to one using ``settings.terraform_bin``
            settings: Harness defaults (retries, timeouts, naming)
            event_logger: Receives lifecycle events
            isolate: Run each scenario in a temporary copy of the module tree
            isolation_root: Tree to copy when isolating (defaults to the module dir)
            extra_retryable_errors: Additional ``{regex: description}`` retry signatures
            sleep: Sleep function used between retries
        """
        self.settings = settings or HarnessSettings()
        self.runtime = runtime or TerraformRuntime(self.settings.terraform_bin)
        self.events = event_logger or NullLogger()
        self.isolate = isolate
        self.isolation_root = isolation_root
        self.extra_retryable_errors = dict(extra_retryable_errors or {})
        self._sleep = sleep

    def build_config(
        self,
        working_dir: Union[str, Path],
        variables: Mapping[str, Any],
        max_retries: Optional[int] = None,
        retry_interval: Optional[float] = None,
    ) -> ScenarioConfig:
        """Build a ScenarioConfig from the runner settings."""
        config = ScenarioConfig(
            working_dir=Path(working_dir),
            variables=dict(variables),
            no_color=self.settings.no_color,
            max_retries=self.settings.max_retries if max_retries is None else max_retries,
            retry_interval=self.settings.retry_interval if retry_interval is None else retry_interval,
            command_timeout=self.settings.command_timeout,
        )
        if self.extra_retryable_errors:
            patterns = dict(config.retryable_errors)
            patterns.update(self.extra_retryable_errors)
            config = config.replace(retryable_errors=patterns)
        return config

    def run_scenario(
        self,
        module_dir: Union[str, Path],
        variable_overrides: Optional[Mapping[str, Any]] = None,
        assertions: Optional[Assertions] = None,
        scenario_id: Optional[str] = None,
        max_retries: Optional[int] = None,
        retry_interval: Optional[float] = None,
    ) -> ScenarioOutcome:
        """
        Run one complete scenario.

        Args:
            module_dir: Directory of the module under test
            variable_overrides: Input variables for the module
            assertions: Called with the outcome after outputs are extracted
            scenario_id: Name for logs and reports
            max_retries: Override of the retry budget
            retry_interval: Override of the fixed retry sleep, in seconds

        Returns:
            ScenarioOutcome. Call ``raise_for_status()`` to turn a failure
            into an exception. ``KeyboardInterrupt`` and ``SystemExit`` are
            re-raised after teardown.
        """
        uid = unique_id()
        scenario_id = scenario_id or f"{Path(module_dir).name}-{uid}"

        variables = dict(variable_overrides or {})
        name_variable = self.settings.name_variable
        if name_variable and name_variable not in variables:
            variables[name_variable] = f"{self.settings.name_prefix}-{uid}".lower()

        # invalid options raise here, before anything is started or copied
        config = self.build_config(module_dir, variables, max_retries, retry_interval)

        outcome = ScenarioOutcome(scenario_id=scenario_id, unique_id=uid, variables=variables)
        data = {"scenario_id": scenario_id, "unique_id": uid}
        self.events.info("scenario.started", f"Starting scenario in {module_dir}", data)

        workspace: Optional[IsolatedWorkspace] = None
        completed = False
        try:
            if self.isolate:
                workspace = IsolatedWorkspace(module_dir, self.isolation_root)
                config = config.replace(working_dir=workspace.working_dir)
            completed = self._execute(config, outcome, assertions)
        except Exception as e:
            logger.exception(f"Unexpected error in scenario {scenario_id}")
            outcome.record_error(e)
        finally:
            try:
                self._teardown(config, outcome)
            finally:
                if workspace is not None:
                    workspace.cleanup()

        outcome.succeeded = completed and outcome.error is None
        if outcome.succeeded:
            self.events.info("scenario.completed", "Scenario passed", data)
        else:
            self.events.error(
                "scenario.failed",
                f"Scenario failed: {outcome.error.value if outcome.error else 'unknown'}",
                {**data, "error": outcome.error_message.splitlines()[0] if outcome.error_message else ""},
            )
        return outcome

    def run_many(self, requests: Iterable[ScenarioRequest], parallel: int = 1) -> List[ScenarioOutcome]:
        """
        Run several scenarios, optionally on a thread pool.

        Scenarios share nothing but the provider account; unique naming keeps
        their resources apart. Outcomes are returned in request order.

        Raises:
            ValueError: If ``parallel > 1`` and two requests would run in the
                same module directory without isolation, since they would
                share ``.terraform`` and local state
        """
        requests = list(requests)
        if parallel > 1 and not self.isolate:
            seen = set()
            for request in requests:
                working_dir = Path(request.module_dir).resolve()
                if working_dir in seen:
                    raise ValueError(
                        f"Several scenarios use {request.module_dir}; run them with isolate=True "
                        f"(--isolate) or with parallel=1"
                    )
                seen.add(working_dir)

        def run(request: ScenarioRequest) -> ScenarioOutcome:
            return self.run_scenario(
                request.module_dir,
                request.variables,
                request.assertions,
                scenario_id=request.scenario_id,
                max_retries=request.max_retries,
                retry_interval=request.retry_interval,
            )

        if parallel <= 1:
            return [run(request) for request in requests]

        with ThreadPoolExecutor(max_workers=parallel) as executor:
            return list(executor.map(run, requests))

    def _execute(
        self,
        config: ScenarioConfig,
        outcome: ScenarioOutcome,
        assertions: Optional[Assertions],
    ) -> bool:
        """Init, apply, extract and assert. Returns True if assertions ran."""
        data = {"scenario_id": outcome.scenario_id}

        # Init
        policy = self._policy(config, outcome)
        start = time.monotonic()
        try:
            result = policy.call(lambda: self.runtime.init(config))
        except ExecutionError as e:
            outcome.stages.append(self._failed_stage("init", e, start, policy.attempts))
            outcome.record_error(e)
            self.events.error("terraform.init", "terraform init failed", {**data, "returncode": e.returncode})
            return False
        outcome.state = ScenarioState.INITIALIZED
        outcome.stages.append(StageResult(
            stage="init",
            status=StageStatus.PASSED,
            message="terraform init succeeded",
            duration_seconds=time.monotonic() - start,
            attempts=policy.attempts,
            raw_output=result.stdout,
        ))
        self.events.info("terraform.init", "terraform init succeeded", data)

        # Apply
        policy = self._policy(config, outcome)
        start = time.monotonic()
        try:
            result = policy.call(lambda: self.runtime.apply(config))
        except ExecutionError as e:
            failure = ApplyFailedError(e, policy.attempts)
            outcome.stages.append(self._failed_stage("apply", e, start, policy.attempts))
            outcome.record_error(failure)
            self.events.error(
                "terraform.apply",
                "terraform apply failed",
                {**data, "attempt": policy.attempts, "returncode": e.returncode},
            )
            return False
        outcome.state = ScenarioState.APPLIED
        duration = time.monotonic() - start
        outcome.stages.append(StageResult(
            stage="apply",
            status=StageStatus.PASSED,
            message="terraform apply succeeded",
            duration_seconds=duration,
            attempts=policy.attempts,
            raw_output=result.stdout,
        ))
        self.events.info("terraform.apply", "terraform apply succeeded", {**data, "duration_seconds": duration})

        # Outputs
        start = time.monotonic()
        try:
            outcome.outputs = OutputExtractor(self.runtime, config).extract_all()
        except ExecutionError as e:
            outcome.stages.append(self._failed_stage("outputs", e, start))
            outcome.record_error(e)
            return False
        outcome.stages.append(StageResult(
            stage="outputs",
            status=StageStatus.PASSED,
            message=f"Extracted {len(outcome.outputs)} output(s)",
            duration_seconds=time.monotonic() - start,
        ))
        self.events.debug("outputs.extracted", f"Extracted {len(outcome.outputs)} output(s)", data)

        # Assertions
        start = time.monotonic()
        if assertions is not None:
            try:
                assertions(outcome)
            except AssertionError as e:
                failure = ScenarioAssertionError(str(e) or "assertion failed")
                failure.__cause__ = e
                self._record_assertion_failure(outcome, failure, start)
            except HarnessError as e:
                self._record_assertion_failure(outcome, e, start)

        if outcome.error is None:
            outcome.stages.append(StageResult(
                stage="assert",
                status=StageStatus.PASSED,
                message="All assertions passed" if assertions else "No assertions",
                duration_seconds=time.monotonic() - start,
            ))
            self.events.info("assertion.passed", "Assertions passed", data)
        outcome.state = ScenarioState.ASSERTED
        return True

    def _teardown(self, config: ScenarioConfig, outcome: ScenarioOutcome) -> None:
        """Destroy whatever the scenario created. Runs at most once."""
        if outcome.state == ScenarioState.DESTROYED:
            return
        if outcome.state == ScenarioState.IDLE:
            # init never succeeded: nothing to tear down
            outcome.state = ScenarioState.DESTROYED
            return

        data = {"scenario_id": outcome.scenario_id}
        outcome.destroy_count += 1
        policy = self._policy(config, outcome)
        start = time.monotonic()
        try:
            policy.call(lambda: self.runtime.destroy(config))
        except ExecutionError as e:
            outcome.stages.append(self._failed_stage("destroy", e, start, policy.attempts))
            self.events.error(
                "destroy.failed",
                "terraform destroy failed; resources may be orphaned",
                {**data, "returncode": e.returncode, "error": e.stderr.strip()[:200]},
            )
            if outcome.error is None:
                outcome.record_error(e)
            else:
                logger.warning(
                    f"Destroy failed for {outcome.scenario_id} after an earlier failure "
                    f"({outcome.error.value}); keeping the original error. Destroy output:\n{e.stderr}"
                )
        else:
            outcome.stages.append(StageResult(
                stage="destroy",
                status=StageStatus.PASSED,
                message="terraform destroy succeeded",
                duration_seconds=time.monotonic() - start,
                attempts=policy.attempts,
            ))
            self.events.info("terraform.destroy", "terraform destroy succeeded", data)
        finally:
            outcome.state = ScenarioState.DESTROYED

    def _policy(self, config: ScenarioConfig, outcome: ScenarioOutcome) -> RetryPolicy:
        def on_retry(attempt: int, matcher: ErrorMatcher, error: ExecutionError) -> None:
            self.events.warning(
                "retry.attempt",
                f"terraform {error.command} hit a retryable error: {matcher.description or matcher.pattern}",
                {"scenario_id": outcome.scenario_id, "attempt": attempt},
            )

        return RetryPolicy(
            max_retries=config.max_retries,
            interval=config.retry_interval,
            matchers=matchers_from_mapping(config.retryable_errors),
            sleep=self._sleep,
            on_retry=on_retry,
        )

    def _record_assertion_failure(
        self,
        outcome: ScenarioOutcome,
        error: HarnessError,
        start: float,
    ) -> None:
        outcome.record_error(error)
        outcome.stages.append(StageResult(
            stage="assert",
            status=StageStatus.FAILED,
            message=str(error),
            duration_seconds=time.monotonic() - start,
        ))
        self.events.error("assertion.failed", str(error).splitlines()[0], {"scenario_id": outcome.scenario_id})

    @staticmethod
    def _failed_stage(
        stage: str,
        error: ExecutionError,
        start: float,
        attempts: int = 1,
    ) -> StageResult:
        # terraform writes diagnostics to both streams
        output = error.stdout
        if error.stdout and error.stderr:
            output = error.stdout + "\n" + error.stderr
        elif error.stderr:
            output = error.stderr
        return StageResult(
            stage=stage,
            status=StageStatus.FAILED,
            message=f"terraform {error.command} failed",
            duration_seconds=time.monotonic() - start,
            attempts=attempts,
            raw_output=output,
        )
