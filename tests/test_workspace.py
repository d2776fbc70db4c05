"""Tests for unique ids and isolated module copies."""

import re

import pytest

from terraform_harness.runtime import IsolatedWorkspace, ScenarioConfig, TerraformRuntime, unique_id


def test_unique_id_shape():
    ids = {unique_id() for _ in range(50)}
    assert all(re.fullmatch(r"[a-z0-9]{6}", i) for i in ids)
    assert len(ids) > 1
    with pytest.raises(ValueError):
        unique_id(0)


def test_copy_skips_local_state(module_dir):
    root = module_dir.parent.parent
    (module_dir / ".terraform").mkdir()
    (module_dir / "terraform.tfstate").write_text("{}")
    (module_dir / "terraform.tfstate.backup").write_text("{}")

    with IsolatedWorkspace(module_dir, root) as workspace:
        copy = workspace.working_dir
        assert (copy / "main.tf").exists()
        assert not (copy / ".terraform").exists()
        assert not (copy / "terraform.tfstate").exists()
        assert not (copy / "terraform.tfstate.backup").exists()
    assert not copy.exists()


def test_init_in_copy_leaves_source_uninitialized(fake_terraform, module_dir):
    runtime = TerraformRuntime()
    with IsolatedWorkspace(module_dir.parent.parent) as workspace:
        runtime.init(ScenarioConfig(working_dir=workspace.working_dir), "-backend=false")
        assert runtime.is_initialized(workspace.working_dir)

    assert not runtime.is_initialized(module_dir.parent.parent)
    assert not (module_dir.parent.parent / ".terraform").exists()
    assert fake_terraform.calls[0]["cwd"] != module_dir.parent.parent


def test_module_outside_root_rejected(module_dir, tmp_path):
    other = tmp_path / "other"
    other.mkdir()
    with pytest.raises(ValueError, match="is not inside"):
        IsolatedWorkspace(module_dir, other)
