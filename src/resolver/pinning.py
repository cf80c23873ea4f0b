"""Version pinning over a closed dependency graph.

Every module in the graph gets exactly one version: the highest version that
satisfies the union of the constraints levied on it by its consumers.
"""

from __future__ import annotations

import copy
import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from common.logging_utils import extra_context, is_debug_enabled
from errors import ModuleDependencyModuleNotFound, ModuleVersionNotFound
from catalog.models import ModuleDependency, ModuleTemplate, ModuleVersion, ProviderModel, SingleModuleVersion
from versioning.matcher import matching_versions, resolve_versions

logger = logging.getLogger(__name__)


@dataclass
class SelectedModuleGraph:
    """Working set of a resolution run.

    ``edges[i]`` holds the dependency edges of ``modules[i]`` (BOM overrides
    applied, provider dependencies appended); edge targets are positions in
    ``modules``. ``edge_versions[i]`` is the version the edges were read
    from and ``available_versions[i]`` the versions ``modules[i]`` entered
    the working set with.
    """
    modules: List[ModuleTemplate] = field(default_factory=list)
    edges: List[List[ModuleDependency]] = field(default_factory=list)
    provider_dependency_ids: List[Set[str]] = field(default_factory=list)
    edge_versions: List[Optional[str]] = field(default_factory=list)
    available_versions: List[List[ModuleVersion]] = field(default_factory=list)

    def add(self, module: ModuleTemplate) -> int:
        self.modules.append(module)
        self.edges.append([])
        self.provider_dependency_ids.append(set())
        self.edge_versions.append(None)
        self.available_versions.append(list(module.versions))
        return len(self.modules) - 1

    def aliases(self) -> Set[str]:
        return {m.alias or m.name for m in self.modules}

    def position_of(self, module_id: str, catalog) -> Optional[int]:
        """Return the first working-set position holding ``module_id``."""
        return next(
            (i for i, m in enumerate(self.modules) if catalog.ids_match(m.id, module_id)), None
        )


def is_skipped(dep: ModuleDependency) -> bool:
    """Manually resolved dependencies without a discriminator are left unbound."""
    return dep.manual_resolution and not dep.discriminator


def exempt_from_versioning(dep: ModuleDependency, target: ModuleTemplate) -> bool:
    """Module versioning does not apply to edges matched by interface."""
    return bool(dep.interface) and dep.interface in target.interfaces


def edge_constraint(catalog, dep: ModuleDependency, target: ModuleTemplate) -> Optional[str]:
    """Return the version constraint ``dep`` places on ``target``, if any."""
    if exempt_from_versioning(dep, target):
        return None
    for ref in dep.refs:
        if ref.version and catalog.ids_match(ref.source, target.id):
            return ref.version
    return None


def collect_constraints(catalog, graph: SelectedModuleGraph) -> Dict[int, List[str]]:
    """Map each module position to the constraints of the edges pointing at it."""
    constraints: Dict[int, List[str]] = {i: [] for i in range(len(graph.modules))}
    for edges in graph.edges:
        for dep in edges:
            for target in dep.targets:
                constraint = edge_constraint(catalog, dep, graph.modules[target])
                if constraint:
                    constraints[target].append(constraint)
    return constraints


def is_unbound(dep: ModuleDependency) -> bool:
    """A required edge that the resolver left without a target."""
    return not dep.is_resolved and not dep.optional and not is_skipped(dep)


def check_graph_completeness(graph: SelectedModuleGraph) -> None:
    """Raise when a required dependency edge was left without a target.

    Raises:
        ModuleDependencyModuleNotFound: A non-optional edge is unbound.
    """
    for module, edges in zip(graph.modules, graph.edges):
        for dep in edges:
            if is_unbound(dep):
                raise ModuleDependencyModuleNotFound(dep, module)


def merge_providers(catalog, version: ModuleVersion, module: ModuleTemplate) -> List[ProviderModel]:
    """Replace provider requirements with catalog definitions and apply BOM overrides by name."""
    bom_providers = {p.name: p for p in (module.bom_module.providers if module.bom_module else [])}

    providers = []
    for provider in version.providers:
        resolved = catalog.lookup_provider(provider) or copy.deepcopy(provider)
        override = bom_providers.get(resolved.name)
        if override is not None and override.ref:
            resolved = dataclasses.replace(resolved, ref=override.ref)
        providers.append(resolved)
    return providers


def _pinned_dependencies(graph: SelectedModuleGraph, index: int,
                         version: ModuleVersion) -> List[ModuleDependency]:
    edges = graph.edges[index]
    by_id = {dep.id: dep for dep in edges}

    dependencies = []
    for declared in version.dependencies:
        dep = by_id.get(declared.id, declared)
        if is_unbound(dep):
            raise ModuleDependencyModuleNotFound(dep, graph.modules[index])
        dependencies.append(copy.deepcopy(dep))
    dependencies.extend(
        copy.deepcopy(dep) for dep in edges if dep.id in graph.provider_dependency_ids[index]
    )
    return dependencies


def check_module_refs(module: SingleModuleVersion) -> None:
    """Every variable ``moduleRef`` must name a dependency the module declares.

    Raises:
        ModuleDependencyNotFound: A ``moduleRef`` names an unknown dependency.
    """
    for variable in module.version.variables:
        if variable.module_ref is not None:
            module.get_dependency(variable.module_ref.id)


def pin_module_versions(catalog, graph: SelectedModuleGraph) -> List[SingleModuleVersion]:
    """Pick one version per module, in working-set order.

    Raises:
        IncompatibleVersions: Consumer constraints on a module conflict.
        ModuleVersionNotFound: No version satisfies the combined constraints.
        ModuleDependencyModuleNotFound: A required dependency of the pinned version is unbound.
    """
    check_graph_completeness(graph)

    constraints = collect_constraints(catalog, graph)

    result: List[SingleModuleVersion] = []
    for index, module in enumerate(graph.modules):
        matchers = resolve_versions(constraints[index])
        versions = matching_versions(module.versions, matchers)
        if not versions:
            raise ModuleVersionNotFound(module, matchers)

        version = copy.deepcopy(versions[0])
        version.dependencies = _pinned_dependencies(graph, index, version)
        version.providers = merge_providers(catalog, version, module)

        pinned = SingleModuleVersion.from_template(module, version)
        check_module_refs(pinned)

        if is_debug_enabled(logger):
            logger.debug(
                "Pinned module version",
                extra=extra_context(
                    event="pin",
                    component="resolver",
                    action="pin_version",
                    target=pinned.alias,
                    version=version.version,
                    constraints=[str(m) for m in matchers] or None,
                ),
            )
        result.append(pinned)

    return result
