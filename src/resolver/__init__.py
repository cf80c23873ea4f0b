"""Dependency resolution and version pinning."""

from .pinning import SelectedModuleGraph, pin_module_versions
from .selected_modules import SelectedModuleResolver, resolve_selected_modules
from .service import ResolutionResult, resolve_bill_of_material

__all__ = [
    "SelectedModuleGraph",
    "pin_module_versions",
    "SelectedModuleResolver",
    "resolve_selected_modules",
    "ResolutionResult",
    "resolve_bill_of_material",
]
