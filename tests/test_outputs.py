"""Tests for output extraction."""

import pytest

from terraform_harness.errors import OutputNotFoundError, TypeMismatchError
from terraform_harness.runtime import OutputExtractor, OutputShape, ScenarioConfig, TerraformRuntime, parse_outputs
from terraform_harness.runtime.outputs import shape_of, stringify
from terraform_harness.scenario import IP_ADDRESS_PATTERN

from tests.conftest import tf_output


@pytest.fixture
def extractor(fake_terraform, module_dir, droplet_outputs) -> OutputExtractor:
    fake_terraform.outputs = droplet_outputs
    return OutputExtractor(TerraformRuntime(), ScenarioConfig(working_dir=module_dir))


class TestStringify:
    def test_scalars(self):
        assert stringify("nyc1") == "nyc1"
        assert stringify(True) == "true"
        assert stringify(False) == "false"
        assert stringify(3) == "3"
        assert stringify(3.0) == "3"
        assert stringify(2.5) == "2.5"
        assert stringify(None) == ""

    def test_nested_values_are_compact_json(self):
        assert stringify({"b": 1, "a": [1, 2]}) == '{"a":[1,2],"b":1}'


class TestShapeOf:
    @pytest.mark.parametrize("declared,expected", [
        ("string", OutputShape.SCALAR),
        ("number", OutputShape.SCALAR),
        ("bool", OutputShape.SCALAR),
        (["list", "string"], OutputShape.LIST),
        (["set", "string"], OutputShape.LIST),
        (["tuple", ["string", "number"]], OutputShape.LIST),
        (["map", "string"], OutputShape.MAP),
        (["object", {"a": "string"}], OutputShape.MAP),
    ])
    def test_declared_types(self, declared, expected):
        assert shape_of(declared, None) == expected

    def test_dynamic_type_falls_back_to_value(self):
        assert shape_of("dynamic", ["a"]) == OutputShape.LIST
        assert shape_of(None, {"a": "b"}) == OutputShape.MAP
        assert shape_of(None, "x") == OutputShape.SCALAR


class TestExtractor:
    def test_scalar_ip(self, extractor):
        ip = extractor.scalar("droplet_ip")
        assert IP_ADDRESS_PATTERN.match(ip)

    def test_map_values_are_strings(self, extractor):
        summary = extractor.map("summary")
        assert summary["droplets_count"] == "3"
        assert summary["load_balancer_created"] == "true"
        assert summary["load_balancer_ip"] == "203.0.113.50"

    def test_map_keys_match_declared_keys_exactly(self, extractor):
        summary = extractor.map("summary")
        assert set(summary) == {"droplets_count", "load_balancer_created", "droplet_public_ips", "load_balancer_ip"}

    def test_list(self, extractor):
        assert extractor.list("droplet_ids") == ["101", "102", "103"]

    def test_list_requested_as_scalar_is_type_mismatch(self, extractor):
        with pytest.raises(TypeMismatchError) as exc_info:
            extractor.extract("droplet_ids", OutputShape.SCALAR)
        assert exc_info.value.name == "droplet_ids"

    def test_map_requested_as_list_is_type_mismatch(self, extractor):
        with pytest.raises(TypeMismatchError):
            extractor.list("droplet_public_ips")

    def test_missing_output(self, extractor):
        with pytest.raises(OutputNotFoundError) as exc_info:
            extractor.scalar("database_url")
        assert "droplet_ip" in exc_info.value.available

    def test_extract_all_omits_nothing_and_adds_nothing(self, extractor, droplet_outputs):
        outputs = extractor.extract_all()
        assert set(outputs) == set(droplet_outputs)

    def test_sensitive_values_are_masked_in_reports(self):
        outputs = parse_outputs({"token": tf_output("s3cret", "string", sensitive=True)})
        assert outputs["token"].value == "s3cret"
        assert outputs["token"].to_dict()["value"] == "<sensitive>"
