"""Dependency closure over a list of seed module templates.

Resolution runs in explicit phases:

1. discovery: every dependency edge of every module is bound to modules of
   the working set, pulling new modules from the catalog (depth first) when
   nothing in the working set matches;
2. constraint application: the version constraint on each edge is applied
   to the versions of the module it is bound to;
3. rediscovery: a module whose newest remaining version is not the one its
   edges were read from gets its edges rebuilt and bound again, then
   constraints are applied again, until no module changes;
4. pinning (see ``resolver.pinning``): one version per module.

The working set only grows and a module's versions only narrow. Edges
record their targets as positions in the working set, which is also the
order of the result.
"""

from __future__ import annotations

import copy
import logging
from typing import List, Optional, Sequence, Tuple

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled
from errors import (
    CircularModuleDependency,
    DependencyModuleNotFound,
    MultipleMatchingModules,
    NoMatchingModuleVersions,
    PreferredModuleNotFound,
)
from catalog.models import ModuleDependency, ModuleTemplate, SingleModuleVersion
from versioning.matcher import matching_versions, sort_versions

from .pinning import (
    SelectedModuleGraph,
    edge_constraint,
    is_skipped,
    pin_module_versions,
)

logger = logging.getLogger(__name__)

WILDCARD = Constants.WILDCARD_DISCRIMINATOR

Chain = Tuple[Tuple[str, str], ...]


def update_alias_for_duplicate_modules(modules: Sequence[ModuleTemplate]) -> List[ModuleTemplate]:
    """Give repeated modules distinct aliases: ``key``, ``key1``, ``key2``...

    The key of a module is its alias, else its name. The first occurrence
    keeps the key (and gets ``alias = name`` when it had none).
    """
    keys = [m.key for m in modules]
    result = []
    for index, module in enumerate(modules):
        module = copy.deepcopy(module)
        positions = [i for i, key in enumerate(keys) if key == keys[index]]
        order = positions.index(index)
        if order == 0:
            module.alias = module.alias or module.name
        else:
            module.alias = f"{keys[index]}{order}"
        result.append(module)
    return result


def match_interface(dep: ModuleDependency, module: ModuleTemplate) -> bool:
    return bool(dep.interface) and dep.interface in module.interfaces


def match_refs(dep: ModuleDependency, module: ModuleTemplate, catalog) -> bool:
    return any(catalog.ids_match(ref.source, module.id) for ref in dep.refs)


def match_alias(dep: ModuleDependency, module: ModuleTemplate) -> bool:
    if not dep.discriminator:
        return False
    return dep.discriminator in (WILDCARD, module.alias, module.name)


def is_default(module: ModuleTemplate) -> bool:
    """A module instance is the default when it kept its catalog alias or is flagged default."""
    return (bool(module.alias) and module.alias == module.original_alias) or module.default


def update_dep_from_bom(dep: ModuleDependency, module: ModuleTemplate) -> ModuleDependency:
    """Return a copy of ``dep`` with the module's BOM override (``ref``, ``optional``) applied."""
    updated = copy.deepcopy(dep)
    bom_dep = module.bom_module.find_dependency(dep.id) if module.bom_module else None
    if bom_dep is None:
        return updated
    if bom_dep.ref:
        updated.discriminator = bom_dep.ref
    if bom_dep.optional is not None:
        updated.optional = bool(bom_dep.optional)
    return updated


class SelectedModuleResolver:
    """Resolves seed module templates into a list of single-version modules.

    In strict mode (the default) ambiguous matches raise
    MultipleMatchingModules unless exactly one candidate is a default;
    otherwise the first candidate is used.
    """

    def __init__(self, catalog, strict: bool = Constants.STRICT_RESOLUTION):
        self.catalog = catalog
        self.strict = strict
        self.graph = SelectedModuleGraph()

    def resolve(self, modules: Sequence[ModuleTemplate]) -> List[SingleModuleVersion]:
        """Resolve ``modules`` and their dependency closure.

        Raises:
            ResolutionError: Any resolution failure; no partial result is returned.
        """
        self.graph = SelectedModuleGraph()
        for module in update_alias_for_duplicate_modules(modules):
            self.graph.add(module)

        seed_count = len(self.graph.modules)
        for index in range(seed_count):
            self._expand(index, ())

        self.apply_version_constraints()
        while self.rediscover_dependencies():
            self.apply_version_constraints()

        result = pin_module_versions(self.catalog, self.graph)
        logger.info("Resolved %d modules from %d seed modules", len(result), seed_count)
        return result

    def _chain_key(self, module: ModuleTemplate) -> Tuple[str, str]:
        return self.catalog.get_module_id(module.id), module.alias or module.name

    def _expand(self, index: int, chain: Chain) -> None:
        module = self.graph.modules[index]
        if not module.versions:
            return

        version = module.versions[0]
        version.providers = [self.catalog.lookup_provider(p) or p for p in version.providers]
        provider_dependencies = [d for p in version.providers for d in p.dependencies]

        edges = [update_dep_from_bom(d, module) for d in version.dependencies + provider_dependencies]
        self.graph.edges[index] = edges
        self.graph.edge_versions[index] = version.version
        self.graph.provider_dependency_ids[index] = {d.id for d in provider_dependencies}

        chain = chain + (self._chain_key(module),)
        for dep in edges:
            self.resolve_dependency(index, dep, chain)

    def resolve_dependency(self, index: int, dep: ModuleDependency, chain: Chain = ()) -> None:
        """Bind ``dep`` (an edge of module ``index``) to one or more modules."""
        module = self.graph.modules[index]
        if dep.targets:
            return

        if is_skipped(dep):
            logger.debug("Skipping dependency %s of %s: manual resolution without discriminator",
                         dep.id, module.alias)
            return

        if dep.discriminator == WILDCARD:
            self.resolve_wildcard_dependency(index, dep, chain)
            return

        matches = self.find_dependency_in_modules(dep, index)
        if matches:
            dep.targets = tuple(matches)
            self._log_binding(module, dep, "working_set")
            return

        if dep.optional:
            logger.debug("Skipping optional dependency %s of %s: no matching module", dep.id, module.alias)
            return

        candidate = self.find_dependency_in_catalog(dep, module)
        dep.targets = (self._pull(candidate, dep, chain),)
        self._log_binding(module, dep, "catalog")

    def resolve_wildcard_dependency(self, index: int, dep: ModuleDependency, chain: Chain = ()) -> None:
        """Bind a ``*`` edge to every matching module.

        Matches already in the working set are bound first; every catalog
        candidate not yet selected is then pulled. Optional edges never pull.

        Raises:
            DependencyModuleNotFound: A required edge matches nothing.
        """
        module = self.graph.modules[index]
        targets = self.find_dependency_in_modules(dep, index)
        pulled = False

        if not dep.optional:
            for candidate in self.lookup_modules_from_dependency(dep):
                position = self.graph.position_of(candidate.id, self.catalog)
                if position == index:
                    continue
                if position is None:
                    targets.append(self._pull(candidate, dep, chain))
                    pulled = True
                elif position not in targets:
                    targets.append(position)

        if not targets:
            if dep.optional:
                logger.debug("Skipping optional dependency %s of %s: no matching module", dep.id, module.alias)
                return
            raise DependencyModuleNotFound(dep, module)

        dep.targets = tuple(targets)
        self._log_binding(module, dep, "catalog" if pulled else "working_set")

    def rediscover_dependencies(self) -> bool:
        """Rebuild the edges of modules whose newest remaining version changed.

        Returns:
            bool: True when any module was expanded again.
        """
        changed = False
        for index in range(len(self.graph.modules)):
            versions = self.graph.modules[index].versions
            if not versions or versions[0].version == self.graph.edge_versions[index]:
                continue
            logger.debug("Rebuilding dependencies of %s for version %s",
                         self.graph.modules[index].alias, versions[0].version)
            self._expand(index, ())
            changed = True
        return changed

    def _pull(self, template: ModuleTemplate, dep: ModuleDependency, chain: Chain) -> int:
        """Add a catalog module to the working set and expand it."""
        module = copy.deepcopy(template)
        module.versions = sort_versions(module.versions)
        if dep.discriminator and dep.discriminator != WILDCARD:
            module.alias = dep.discriminator

        key = self._chain_key(module)
        if key in chain:
            raise CircularModuleDependency([alias for _, alias in chain] + [key[1]])

        module.alias = self._unique_alias(module.alias or module.name)

        if is_debug_enabled(logger):
            logger.debug(
                "Pulled module from catalog",
                extra=extra_context(
                    event="pull",
                    component="resolver",
                    action="pull_module",
                    target=module.id,
                    alias=module.alias,
                    dependency=dep.id,
                ),
            )

        index = self.graph.add(module)
        self._expand(index, chain)
        return index

    def _unique_alias(self, alias: str) -> str:
        existing = self.graph.aliases()
        if alias not in existing:
            return alias
        suffix = 1
        while f"{alias}{suffix}" in existing:
            suffix += 1
        return f"{alias}{suffix}"

    def find_dependency_in_modules(self, dep: ModuleDependency, index: int) -> List[int]:
        """Return the working-set positions that satisfy ``dep`` (never the owning module)."""
        containing = self.graph.modules[index]

        matches = []
        for i, m in enumerate(self.graph.modules):
            if i == index:
                continue
            if dep.discriminator and not match_alias(dep, m):
                continue
            if match_interface(dep, m) or match_refs(dep, m, self.catalog):
                matches.append(i)

        if dep.discriminator == WILDCARD or len(matches) <= 1:
            return matches

        if self.strict:
            defaults = [i for i in matches if is_default(self.graph.modules[i])]
            if len(defaults) == 1:
                return defaults
            raise MultipleMatchingModules(
                containing, dep, [self.graph.modules[i] for i in (defaults or matches)]
            )

        return matches[:1]

    def lookup_modules_from_dependency(self, dep: ModuleDependency) -> List[ModuleTemplate]:
        """Return the catalog candidates for ``dep``, by interface or by refs."""
        if dep.interface:
            return self.catalog.find_modules_with_interface(dep.interface)

        candidates: List[ModuleTemplate] = []
        for ref in dep.refs:
            module = self.catalog.lookup_module(id=ref.source)
            if module is not None and not any(self.catalog.ids_match(module.id, c.id) for c in candidates):
                candidates.append(module)
        return candidates

    def find_dependency_in_catalog(self, dep: ModuleDependency, module: ModuleTemplate) -> ModuleTemplate:
        """Select the single catalog module that satisfies ``dep``.

        Raises:
            PreferredModuleNotFound: Several candidates and the preferred id is not among them.
            MultipleMatchingModules: Several candidates, no preference, strict mode.
            DependencyModuleNotFound: No candidates at all.
        """
        candidates = self.lookup_modules_from_dependency(dep)

        if len(candidates) > 1 and dep.preferred:
            preferred: Optional[ModuleTemplate] = next(
                (c for c in candidates if self.catalog.ids_match(c.id, dep.preferred)), None
            )
            if preferred is None:
                raise PreferredModuleNotFound(dep.preferred, dep, module, candidates)
            return preferred

        if len(candidates) > 1 and self.strict:
            raise MultipleMatchingModules(module, dep, candidates)

        if candidates:
            return candidates[0]

        raise DependencyModuleNotFound(dep, module)

    def apply_version_constraints(self) -> None:
        """Narrow each bound module's versions by the constraints on the edges pointing at it.

        Each edge is checked on its own against the versions the module
        entered the working set with; the module keeps the versions every
        edge allows. Running it again over the same edges changes nothing.

        Raises:
            NoMatchingModuleVersions: An edge's constraint matches no version.
        """
        for edges in self.graph.edges:
            for dep in edges:
                for target_index in dep.targets:
                    target = self.graph.modules[target_index]
                    constraint = edge_constraint(self.catalog, dep, target)
                    if not constraint:
                        continue

                    allowed = matching_versions(self.graph.available_versions[target_index], constraint)
                    if not allowed:
                        raise NoMatchingModuleVersions(dep, target)

                    allowed_versions = {v.version for v in allowed}
                    target.versions = [v for v in target.versions if v.version in allowed_versions]

    def _log_binding(self, module: ModuleTemplate, dep: ModuleDependency, source: str) -> None:
        if not is_debug_enabled(logger):
            return
        logger.debug(
            "Resolved dependency",
            extra=extra_context(
                event="resolve",
                component="resolver",
                action="bind_dependency",
                target=module.alias,
                dependency=dep.id,
                outcome=source,
                modules=[self.graph.modules[i].alias for i in dep.targets],
            ),
        )


def resolve_selected_modules(catalog, modules: Sequence[ModuleTemplate],
                             strict: bool = Constants.STRICT_RESOLUTION) -> List[SingleModuleVersion]:
    """Resolve ``modules`` against ``catalog``."""
    return SelectedModuleResolver(catalog, strict=strict).resolve(modules)
