"""Tests for the terraform lifecycle driver."""

import subprocess

import pytest

from terraform_harness.errors import ExecutionError
from terraform_harness.runtime import ScenarioConfig, TerraformCommand, TerraformRuntime, format_variable


@pytest.fixture
def config(module_dir) -> ScenarioConfig:
    return ScenarioConfig(
        working_dir=module_dir,
        variables={"environment": "test-abc123", "droplet_count": 3, "tags": ["web", "test"]},
        env_vars={"DIGITALOCEAN_TOKEN": "dummy"},
    )


class TestBuildArgs:
    def test_apply_passes_variables_and_flags(self, config):
        args = TerraformRuntime().build_args(TerraformCommand.APPLY, config)
        assert args[0] == "apply"
        assert "-auto-approve" in args
        assert "-input=false" in args
        assert "-no-color" in args
        assert "environment=test-abc123" in args
        assert "droplet_count=3" in args
        assert 'tags=["web", "test"]' in args

    def test_validate_does_not_receive_variables(self, config):
        args = TerraformRuntime().build_args(TerraformCommand.VALIDATE, config)
        assert args == ["validate", "-no-color"]

    def test_fmt_uses_check_mode(self, config):
        args = TerraformRuntime().build_args(TerraformCommand.FORMAT, config)
        assert args == ["fmt", "-check"]

    def test_color_can_be_kept(self, config):
        args = TerraformRuntime().build_args(TerraformCommand.INIT, config.replace(no_color=False))
        assert "-no-color" not in args

    def test_var_files(self, config):
        args = TerraformRuntime().build_args(TerraformCommand.PLAN, config.replace(var_files=("prod.tfvars",)))
        assert args[args.index("-var-file") + 1] == "prod.tfvars"

    def test_format_variable(self):
        assert format_variable("nyc1") == "nyc1"
        assert format_variable(True) == "true"
        assert format_variable({"a": 1}) == '{"a": 1}'


class TestRun:
    def test_init_runs_in_working_dir_with_env(self, fake_terraform, config):
        TerraformRuntime().init(config)
        call = fake_terraform.calls[0]
        assert call["args"][:2] == ["terraform", "init"]
        assert call["cwd"] == config.working_dir
        assert call["env"]["DIGITALOCEAN_TOKEN"] == "dummy"

    def test_non_zero_exit_raises_with_stderr(self, fake_terraform, config):
        fake_terraform.respond("init", 1, stderr="Error: Failed to query available provider packages")
        with pytest.raises(ExecutionError) as exc_info:
            TerraformRuntime().init(config)
        assert exc_info.value.returncode == 1
        assert "Failed to query available provider packages" in str(exc_info.value)
        assert exc_info.value.stderr == "Error: Failed to query available provider packages"

    def test_apply_requires_init(self, fake_terraform, config):
        with pytest.raises(ExecutionError, match="init must run"):
            TerraformRuntime().apply(config)
        assert fake_terraform.calls == []

    def test_apply_after_init(self, fake_terraform, config):
        runtime = TerraformRuntime()
        runtime.init_and_apply(config)
        assert fake_terraform.commands() == ["init", "apply"]

    def test_existing_terraform_dir_counts_as_initialized(self, fake_terraform, config):
        (config.working_dir / ".terraform").mkdir()
        TerraformRuntime().plan(config, out_file="tfplan")
        assert "-out=tfplan" in fake_terraform.calls[0]["args"]

    def test_destroy_without_init_is_a_no_op(self, fake_terraform, config):
        result = TerraformRuntime().destroy(config)
        assert result.success
        assert fake_terraform.calls == []

    def test_destroy_with_nothing_to_destroy_succeeds(self, fake_terraform, config):
        fake_terraform.respond("destroy", 0, stdout="No changes. No objects need to be destroyed.")
        runtime = TerraformRuntime()
        runtime.init(config)
        assert runtime.destroy(config).success

    def test_fmt_check_failure_lists_files(self, fake_terraform, config):
        fake_terraform.respond("fmt", 3, stdout="main.tf\n")
        with pytest.raises(ExecutionError) as exc_info:
            TerraformRuntime().fmt_check(config)
        assert exc_info.value.stdout == "main.tf\n"

    def test_fmt_check_passes_on_canonical_source(self, fake_terraform, config):
        assert TerraformRuntime().fmt_check(config).success

    def test_timeout_becomes_execution_error(self, fake_terraform, config):
        fake_terraform.raise_on("init", subprocess.TimeoutExpired(["terraform", "init"], 5))
        with pytest.raises(ExecutionError) as exc_info:
            TerraformRuntime().init(config.replace(command_timeout=5))
        assert exc_info.value.returncode == -1
        assert "timed out after 5s" in exc_info.value.stderr

    def test_missing_binary(self, fake_terraform, config):
        fake_terraform.raise_on("init", FileNotFoundError("No such file or directory: 'terraform'"))
        with pytest.raises(ExecutionError, match="Could not run terraform"):
            TerraformRuntime().init(config)

    def test_output_json_rejects_garbage(self, fake_terraform, config):
        fake_terraform.respond("output", 0, stdout="not json")
        with pytest.raises(ExecutionError, match="Could not parse output JSON"):
            TerraformRuntime().output_json(config)

    def test_output_json_empty(self, fake_terraform, config):
        fake_terraform.respond("output", 0, stdout="")
        assert TerraformRuntime().output_json(config) == {}

    def test_command_result_records_duration(self, fake_terraform, config):
        result = TerraformRuntime().validate(config)
        assert result.command == "validate"
        assert result.duration_seconds >= 0


class TestScenarioConfig:
    def test_variables_are_read_only(self, module_dir):
        config = ScenarioConfig(working_dir=module_dir, variables={"region": "nyc1"})
        with pytest.raises(TypeError):
            config.variables["region"] = "sfo3"

    def test_with_variables_merges(self, module_dir):
        config = ScenarioConfig(working_dir=module_dir, variables={"region": "nyc1"})
        merged = config.with_variables({"environment": "test-abc123"})
        assert dict(merged.variables) == {"region": "nyc1", "environment": "test-abc123"}
        assert dict(config.variables) == {"region": "nyc1"}

    def test_rejects_negative_retries(self, module_dir):
        with pytest.raises(ValueError):
            ScenarioConfig(working_dir=module_dir, max_retries=-1)
