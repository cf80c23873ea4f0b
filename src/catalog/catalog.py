"""In-memory, read-only view over catalog modules, providers and id aliases.

Every lookup hands out a deep copy so callers never observe each other's
mutations and several resolutions can share one Catalog.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled
from errors import BillOfMaterialNotFound, BillOfMaterialVersionNotFound
from bom.models import BillOfMaterial, BillOfMaterialModule
from versioning.matcher import matching_versions

from .models import (
    BillOfMaterialEntry,
    ModuleIdAlias,
    ModuleTemplate,
    ProviderModel,
    clean_id,
)

logger = logging.getLogger(__name__)


def flatten_modules(data: Dict[str, Any]) -> List[ModuleTemplate]:
    """Return the modules of a v2 (``modules``) or v1 (``categories``) catalog document."""
    if data.get("modules") is not None or data.get("apiVersion") == Constants.CATALOG_API_V2:
        return [ModuleTemplate.from_dict(m) for m in data.get("modules") or []]

    modules: List[ModuleTemplate] = []
    for category in data.get("categories") or []:
        for module in category.get("modules") or []:
            modules.append(ModuleTemplate.from_dict(module, category=category.get("category")))
    return modules


class Catalog:
    """Queryable set of module templates, providers and id aliases."""

    def __init__(
        self,
        modules: Iterable[ModuleTemplate] = (),
        providers: Iterable[ProviderModel] = (),
        aliases: Iterable[ModuleIdAlias] = (),
        boms: Iterable[BillOfMaterialEntry] = (),
        metadata: Optional[Dict[str, Any]] = None,
        filter_value: Optional[Dict[str, Optional[str]]] = None,
    ):
        self._modules: List[ModuleTemplate] = list(modules)
        self._providers: List[ProviderModel] = list(providers)
        self._aliases: List[ModuleIdAlias] = list(aliases)
        self._boms: List[BillOfMaterialEntry] = list(boms)
        self.metadata: Dict[str, Any] = dict(metadata or {})
        self.filter_value: Dict[str, Optional[str]] = dict(filter_value or {})
        self._flattened_aliases: Dict[str, str] = self._denormalize_aliases(self._aliases)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Catalog":
        """Build a catalog from a parsed catalog document."""
        return cls(
            modules=flatten_modules(data),
            providers=[ProviderModel.from_dict(p) for p in data.get("providers") or []],
            aliases=[ModuleIdAlias.from_dict(a) for a in data.get("aliases") or []],
            boms=[BillOfMaterialEntry.from_dict(b) for b in data.get("boms") or []],
            metadata=data.get("metadata"),
        )

    @staticmethod
    def _denormalize_aliases(aliases: Sequence[ModuleIdAlias]) -> Dict[str, str]:
        result: Dict[str, str] = {}
        for module_alias in aliases:
            canonical = clean_id(module_alias.id)
            for alias in module_alias.aliases:
                key = clean_id(alias)
                existing = result.get(key)
                if existing is not None and existing != canonical:
                    logger.warning(
                        "Module id alias %s already maps to %s; ignoring mapping to %s",
                        alias, existing, canonical,
                    )
                    continue
                result[key] = canonical
        return result

    @property
    def modules(self) -> List[ModuleTemplate]:
        return copy.deepcopy(self._modules)

    @property
    def providers(self) -> List[ProviderModel]:
        return copy.deepcopy(self._providers)

    @property
    def aliases(self) -> List[ModuleIdAlias]:
        return copy.deepcopy(self._aliases)

    @property
    def boms(self) -> List[BillOfMaterialEntry]:
        return copy.deepcopy(self._boms)

    def __len__(self) -> int:
        return len(self._modules)

    def get_module_id(self, module_id: Optional[str]) -> str:
        """Return the canonical form of ``module_id``."""
        cleaned = clean_id(module_id)
        return self._flattened_aliases.get(cleaned, cleaned)

    def ids_match(self, a: Optional[str], b: Optional[str]) -> bool:
        """Compare two module ids after alias normalization."""
        return self.get_module_id(a) == self.get_module_id(b)

    def lookup_module(self, id: Optional[str] = None,  # pylint: disable=redefined-builtin
                      name: Optional[str] = None) -> Optional[ModuleTemplate]:
        """Find a module by id (alias-normalized), falling back to name."""
        result: Optional[ModuleTemplate] = None
        if id:
            result = next((m for m in self._modules if self.ids_match(m.id, id)), None)
        if result is None and name:
            result = next((m for m in self._modules if m.name == name), None)

        if is_debug_enabled(logger):
            logger.debug(
                "Catalog module lookup",
                extra=extra_context(
                    event="lookup",
                    component="catalog",
                    action="lookup_module",
                    target=id or name,
                    outcome="found" if result is not None else "missing",
                ),
            )

        return copy.deepcopy(result)

    def lookup_provider(self, provider: ProviderModel) -> Optional[ProviderModel]:
        """Find the catalog definition of a provider by name and source."""
        for p in self._providers:
            if p.name == provider.name and p.source == provider.source:
                return copy.deepcopy(p)
        return None

    def find_modules_with_interface(self, interface: str) -> List[ModuleTemplate]:
        return [copy.deepcopy(m) for m in self._modules if interface in m.interfaces]

    def filter(self, platform: Optional[str] = None, provider: Optional[str] = None,
               modules: Optional[Sequence[BillOfMaterialModule]] = None) -> "Catalog":
        """Return a catalog restricted by platform, provider policy and module subset.

        When ``modules`` is given only those modules are kept, and the versions
        of each are narrowed to the entry's version constraint.
        """
        logger.debug("Filtering catalog modules: platform=%s, provider=%s", platform, provider)

        filtered: List[ModuleTemplate] = []
        for module in self._modules:
            if not _matching_platform(module, platform):
                continue
            if not _matching_provider(module, provider):
                continue
            if modules is not None:
                entry = self._matching_bom_module(module, modules)
                if entry is None:
                    continue
                module = copy.deepcopy(module)
                if entry.version:
                    module.versions = matching_versions(module.versions, entry.version)
            filtered.append(module)

        return Catalog(
            modules=filtered,
            providers=self._providers,
            aliases=self._aliases,
            boms=self._boms,
            metadata=self.metadata,
            filter_value={"platform": platform, "provider": provider},
        )

    def _matching_bom_module(self, module: ModuleTemplate,
                             modules: Sequence[BillOfMaterialModule]) -> Optional[BillOfMaterialModule]:
        for entry in modules:
            if (entry.id and self.ids_match(entry.id, module.id)) or (entry.name and entry.name == module.name):
                return entry
        return None

    def lookup_bom(self, name: str, version: Optional[str] = None) -> BillOfMaterial:
        """Return a BOM published in the catalog.

        Raises:
            BillOfMaterialNotFound: No entry has that name.
            BillOfMaterialVersionNotFound: The entry has no such version.
        """
        entry = next((b for b in self._boms if b.name == name), None)
        if entry is None:
            raise BillOfMaterialNotFound(name, [b.name for b in self._boms])

        bom_version = next((v for v in entry.versions if not version or v.version == version), None)
        if bom_version is None:
            raise BillOfMaterialVersionNotFound(name, version)

        if bom_version.content is not None:
            return BillOfMaterial.from_dict(bom_version.content, name=name)
        if bom_version.metadata_url:
            from catalog.loader import load_bill_of_material  # pylint: disable=import-outside-toplevel
            return load_bill_of_material(bom_version.metadata_url)
        raise BillOfMaterialVersionNotFound(name, version)


def _matching_platform(module: ModuleTemplate, platform: Optional[str]) -> bool:
    return not module.platforms or not platform or platform in module.platforms


def _matching_provider(module: ModuleTemplate, provider: Optional[str]) -> bool:
    return not provider or provider == Constants.IBM_PROVIDER or module.module_provider != Constants.IBM_PROVIDER
