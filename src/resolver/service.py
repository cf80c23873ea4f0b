"""Entry point tying BOM expansion, dependency resolution and pinning together."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from constants import Constants
from common.logging_utils import Timer
from bom.expansion import expand_bill_of_material
from bom.models import BillOfMaterial
from catalog.models import SingleModuleVersion

from .selected_modules import SelectedModuleResolver

logger = logging.getLogger(__name__)


@dataclass
class ResolutionResult:
    """Resolved modules, in discovery order, plus the version-pinned BOM."""
    bill_of_material: BillOfMaterial
    modules: List[SingleModuleVersion] = field(default_factory=list)

    def module(self, alias: str) -> Optional[SingleModuleVersion]:
        return next((m for m in self.modules if m.alias == alias), None)

    def dependency_aliases(self, alias: str, dependency_id: str) -> List[str]:
        """Return the aliases bound to ``dependency_id`` of module ``alias``."""
        module = self.module(alias)
        if module is None:
            return []
        return [m.alias for m in module.dependency_modules(dependency_id, self.modules)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "modules": [m.to_dict(self.modules) for m in self.modules],
            "billOfMaterial": self.bill_of_material.to_dict(),
        }


def resolve_bill_of_material(
    catalog,
    bom: Union[BillOfMaterial, Dict[str, Any]],
    strict: bool = Constants.STRICT_RESOLUTION,
    platform: Optional[str] = None,
    provider: Optional[str] = None,
) -> ResolutionResult:
    """Resolve a bill of material against a catalog.

    The catalog is restricted by ``platform`` and ``provider`` first. The
    result is a pure function of the arguments; the catalog is not modified.

    Raises:
        ResolutionError: Any lookup, ambiguity, completeness or version failure.
    """
    if not isinstance(bom, BillOfMaterial):
        bom = BillOfMaterial.from_dict(bom)

    filtered = catalog.filter(platform=platform, provider=provider)

    with Timer() as t:
        seeds = expand_bill_of_material(filtered, bom)
        modules = SelectedModuleResolver(filtered, strict=strict).resolve(seeds)

    logger.info("Resolved bill of material %s in %.2f ms", bom.name, t.duration_ms())

    return ResolutionResult(bill_of_material=bom.apply_versions(modules), modules=modules)
