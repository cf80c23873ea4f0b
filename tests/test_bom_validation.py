"""Tests for BOM module configuration validation."""

import os

import pytest

from bom.models import BillOfMaterial, BillOfMaterialModule
from catalog.loader import load_bill_of_material
from bom.validation import (
    build_bom_module,
    parse_module_config,
    validate_bill_of_material,
    validate_bill_of_material_module,
    validate_bill_of_material_module_config,
)
from errors import BillOfMaterialModuleConfigError, BillOfMaterialModuleParsingError, ModuleNotFound


class TestParseModuleConfig:
    """Module config snippets."""

    def test_name_is_dropped(self):
        config = parse_module_config("name: other\nalias: ns\nvariables:\n  - name: name\n    value: tools\n")
        assert "name" not in config
        assert config["alias"] == "ns"

    @pytest.mark.parametrize("text", [None, "", "# only a comment\n"])
    def test_empty(self, text):
        assert parse_module_config(text) == {}

    @pytest.mark.parametrize("text", ["variables: [unclosed\n", "- a\n- b\n", "just text"])
    def test_invalid(self, text):
        with pytest.raises(BillOfMaterialModuleParsingError) as exc_info:
            parse_module_config(text)
        assert exc_info.value.content == text


class TestValidateModule:
    """Variables and dependencies checked against the latest catalog version."""

    def test_valid_config(self, catalog):
        result = validate_bill_of_material_module_config(
            catalog, "namespace",
            "variables:\n  - name: cluster_config_file\n    value: /tmp/config\n"
            "dependencies:\n  - name: cluster\n    ref: mycluster\n",
        )
        assert result.name == "namespace"
        assert result.variables[0].value == "/tmp/config"
        assert result.dependencies[0].ref == "mycluster"

    def test_build_by_id(self, catalog):
        bom_module = build_bom_module(catalog, "github.com/ibm-garage-cloud/terraform-k8s-namespace")
        assert bom_module.name == "namespace"

    def test_unknown_names(self, catalog):
        """Unknown variables and dependencies are reported with what is available."""
        bom_module = BillOfMaterialModule.from_value({
            "name": "namespace",
            "variables": [{"name": "name"}, {"name": "missing_var"}],
            "dependencies": [{"name": "cluster"}, {"name": "missing_dep", "ref": "x"}],
        })

        with pytest.raises(BillOfMaterialModuleConfigError) as exc_info:
            validate_bill_of_material_module(catalog, bom_module)

        error = exc_info.value
        assert error.module_name == "namespace"
        assert error.unmatched_variable_names == ["missing_var"]
        assert error.available_variable_names == ["name", "cluster_config_file"]
        assert error.unmatched_dependency_names == ["missing_dep"]
        assert error.available_dependency_names == ["cluster"]

    def test_checks_latest_version(self, catalog):
        """worker_count only exists in the latest version of the cluster module."""
        bom_module = BillOfMaterialModule.from_value({
            "name": "ibm-container-platform",
            "variables": [{"name": "worker_count", "value": 3}],
        })
        assert validate_bill_of_material_module(catalog, bom_module) is bom_module

    def test_unknown_variable_only(self, catalog):
        bom_module = BillOfMaterialModule.from_value({"name": "olm", "variables": [{"name": "channel"}]})
        with pytest.raises(BillOfMaterialModuleConfigError) as exc_info:
            validate_bill_of_material_module(catalog, bom_module)
        assert exc_info.value.unmatched_variable_names == ["channel"]
        assert exc_info.value.unmatched_dependency_names == []
        assert "channel" in str(exc_info.value)

    def test_unknown_module(self, catalog):
        with pytest.raises(ModuleNotFound):
            validate_bill_of_material_module_config(catalog, "missing", "variables: []\n")

    def test_invalid_yaml(self, catalog):
        with pytest.raises(BillOfMaterialModuleParsingError):
            validate_bill_of_material_module_config(catalog, "namespace", "variables: [\n")


class TestValidateBillOfMaterial:

    def test_fixture_bom_is_valid(self, catalog, fixtures_dir):
        bom = load_bill_of_material(os.path.join(fixtures_dir, "bom.yaml"))
        assert validate_bill_of_material(catalog, bom) is bom

    def test_first_failure_raised(self, catalog):
        bom = BillOfMaterial(modules=[
            BillOfMaterialModule(name="olm"),
            BillOfMaterialModule.from_value({"name": "argocd", "variables": [{"name": "bogus"}]}),
        ])
        with pytest.raises(BillOfMaterialModuleConfigError) as exc_info:
            validate_bill_of_material(catalog, bom)
        assert exc_info.value.module_name == "argocd"
