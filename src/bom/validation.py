"""Validation of bill of material module configuration against the catalog."""

from __future__ import annotations

import logging
from typing import List, Optional

import yaml

from errors import BillOfMaterialModuleConfigError, BillOfMaterialModuleParsingError, ModuleNotFound
from versioning.matcher import sort_versions

from .models import BillOfMaterial, BillOfMaterialModule

logger = logging.getLogger(__name__)


def parse_module_config(module_config_yaml: Optional[str]) -> dict:
    """Parse a module config snippet (``variables``, ``dependencies``, ...).

    Raises:
        BillOfMaterialModuleParsingError: The text is not a YAML mapping.
    """
    if not module_config_yaml:
        return {}
    try:
        content = yaml.safe_load(module_config_yaml)
    except yaml.YAMLError as exc:
        raise BillOfMaterialModuleParsingError(module_config_yaml) from exc
    if content is None:
        return {}
    if not isinstance(content, dict):
        raise BillOfMaterialModuleParsingError(module_config_yaml)
    content.pop("name", None)
    return content


def build_bom_module(catalog, module_id: str, module_config_yaml: Optional[str] = None) -> BillOfMaterialModule:
    """Build a BOM entry for a catalog module from a config snippet.

    Raises:
        ModuleNotFound: No module has that id or name.
        BillOfMaterialModuleParsingError: The snippet cannot be parsed.
    """
    module = catalog.lookup_module(id=module_id, name=module_id)
    if module is None:
        raise ModuleNotFound(module_id)

    return BillOfMaterialModule.from_value({"name": module.name, **parse_module_config(module_config_yaml)})


def validate_bill_of_material_module(catalog, bom_module: BillOfMaterialModule) -> BillOfMaterialModule:
    """Check that a BOM entry only names variables and dependencies its module declares.

    The check runs against the latest version of the catalog module.

    Raises:
        ModuleNotFound: The entry's module is not in the catalog.
        BillOfMaterialModuleConfigError: Unknown variable or dependency names.
    """
    module = catalog.lookup_module(id=bom_module.id, name=bom_module.name)
    if module is None:
        raise ModuleNotFound(bom_module.id or bom_module.name or "<not provided>")

    versions = sort_versions(module.versions)
    latest = versions[0] if versions else None

    available_variables: List[str] = [v.name for v in latest.variables] if latest else []
    available_dependencies: List[str] = [d.id for d in latest.dependencies] if latest else []

    unmatched_variables = [v.name for v in bom_module.variables if v.name not in available_variables]
    unmatched_dependencies = [
        d.dependency_id for d in bom_module.dependencies if d.dependency_id not in available_dependencies
    ]

    if unmatched_variables or unmatched_dependencies:
        raise BillOfMaterialModuleConfigError(
            module.name,
            unmatched_variable_names=unmatched_variables,
            available_variable_names=available_variables,
            unmatched_dependency_names=unmatched_dependencies,
            available_dependency_names=available_dependencies,
        )

    logger.debug("BOM module config valid: %s", module.name)
    return bom_module


def validate_bill_of_material_module_config(catalog, module_name: str,
                                            module_config_yaml: Optional[str]) -> BillOfMaterialModule:
    """Parse a module config snippet and validate it against the catalog."""
    return validate_bill_of_material_module(catalog, build_bom_module(catalog, module_name, module_config_yaml))


def validate_bill_of_material(catalog, bom: BillOfMaterial) -> BillOfMaterial:
    """Validate every module entry of ``bom``; the first failure is raised."""
    for bom_module in bom.modules:
        validate_bill_of_material_module(catalog, bom_module)
    return bom
