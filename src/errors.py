"""Error taxonomy for catalog lookup, dependency resolution and version pinning.

Every error is terminal: resolution aborts and the caller is expected to
surface the message as-is. Structured context is kept on the instances so
callers can render their own messages.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence


def _describe(module) -> str:
    """Return a short human label for a module-like object."""
    if module is None:
        return "<unknown>"
    alias = getattr(module, "alias", None)
    name = getattr(module, "name", None)
    module_id = getattr(module, "id", None)
    label = alias or name or module_id or str(module)
    if module_id and module_id != label:
        return f"{label} ({module_id})"
    return label


def _describe_matchers(matchers: Iterable) -> str:
    return ", ".join(str(m) for m in matchers)


class ResolutionError(Exception):
    """Base class for all resolution failures."""


# Lookup failures

class ModuleNotFound(ResolutionError):
    """A module could not be found in the catalog."""

    def __init__(self, source: str, catalog_url: Optional[str] = None):
        self.source = source
        self.catalog_url = catalog_url
        message = f"Unable to find module: {source}"
        if catalog_url:
            message += f" in catalog {catalog_url}"
        super().__init__(message)


class ModulesNotFound(ResolutionError):
    """Several seed modules could not be found in the catalog."""

    def __init__(self, sources: Sequence[str]):
        self.sources: List[str] = list(sources)
        super().__init__(f"Unable to find module(s): {', '.join(self.sources)}")


# Ambiguity failures

class MultipleMatchingModules(ResolutionError):
    """More than one module could satisfy a dependency and none was preferred."""

    def __init__(self, module, dependency, candidates: Sequence):
        self.module_id = getattr(module, "id", None)
        self.dependency_id = dependency.id
        self.candidates = [_describe(c) for c in candidates]
        super().__init__(
            f"More than one module resolves dependency for module {_describe(module)}: "
            f"dependency={dependency.id}, candidates=[{', '.join(self.candidates)}]. "
            "Add a discriminator to the bill of material to select one."
        )


class PreferredModuleNotFound(ResolutionError):
    """The preferred module named by a dependency is not among the candidates."""

    def __init__(self, preferred: str, dependency, module, candidates: Sequence = ()):
        self.preferred = preferred
        self.module_id = getattr(module, "id", None)
        self.dependency_id = dependency.id
        self.candidates = [_describe(c) for c in candidates]
        super().__init__(
            f"Preferred module {preferred} not found for dependency {dependency.id} "
            f"of module {_describe(module)}: candidates=[{', '.join(self.candidates)}]"
        )


# Graph-completeness failures

class DependencyModuleNotFound(ResolutionError):
    """The catalog has no module that can satisfy a dependency."""

    def __init__(self, dependency, module):
        self.dependency_id = dependency.id
        self.module_id = getattr(module, "id", None)
        target = dependency.interface or ", ".join(r.source for r in dependency.refs) or "<none>"
        super().__init__(
            f"Unable to find dependent module for {_describe(module)}: "
            f"dependency={dependency.id}, target={target}"
        )


class ModuleDependencyModuleNotFound(ResolutionError):
    """A required dependency edge was left without a resolved module."""

    def __init__(self, dependency, module):
        self.dependency_id = dependency.id
        self.module_id = getattr(module, "id", None)
        super().__init__(
            f"Module for dependency {dependency.id} of {_describe(module)} was not resolved"
        )


class ModuleDependencyNotFound(ResolutionError):
    """A dependency id is not declared by the module."""

    def __init__(self, dependency_id: str, module, available: Sequence[str] = ()):
        self.dependency_id = dependency_id
        self.module_id = getattr(module, "id", None)
        self.available = list(available)
        super().__init__(
            f"Dependency {dependency_id} is not declared by module {_describe(module)}: "
            f"available=[{', '.join(self.available)}]"
        )


class CircularModuleDependency(ResolutionError):
    """Expanding a dependency would pull a module already being expanded."""

    def __init__(self, chain: Sequence[str]):
        self.chain = list(chain)
        super().__init__(f"Circular module dependency: {' -> '.join(self.chain)}")


# Version failures

class InvalidVersionConstraint(ResolutionError):
    """A version constraint could not be parsed."""

    def __init__(self, constraint: str):
        self.constraint = constraint
        super().__init__(f"Invalid version constraint: {constraint!r}")


class NoMatchingModuleVersions(ResolutionError):
    """No version of a module satisfies the constraint on a dependency edge."""

    def __init__(self, dependency, module):
        self.dependency_id = dependency.id
        self.module_id = getattr(module, "id", None)
        constraints = [r.version for r in dependency.refs if r.version]
        super().__init__(
            f"No versions of {_describe(module)} match dependency {dependency.id}: "
            f"constraints=[{', '.join(constraints)}]"
        )


class ModuleVersionNotFound(ResolutionError):
    """No version of a module satisfies the combined constraints."""

    def __init__(self, module, matchers):
        self.module_id = getattr(module, "id", None)
        self.matchers = list(matchers) if not isinstance(matchers, str) else matchers
        shown = matchers if isinstance(matchers, str) else _describe_matchers(matchers)
        super().__init__(f"Unable to find version [{shown}] for module: {_describe(module)}")


class IncompatibleVersions(ResolutionError):
    """Version constraints from different consumers cannot all hold."""

    def __init__(self, matchers):
        self.matchers = list(matchers)
        super().__init__(f"Versions are incompatible: [{_describe_matchers(self.matchers)}]")


# Input-shape failures

class BillOfMaterialError(ResolutionError):
    """Base class for problems with bill of material input."""


class BillOfMaterialParsingError(BillOfMaterialError):
    """The bill of material document could not be parsed."""

    def __init__(self, content: str, reason: Optional[str] = None):
        self.content = content
        message = "Error parsing BOM yaml"
        if reason:
            message += f" ({reason})"
        super().__init__(f"{message}: \n{content}")


class BillOfMaterialModuleParsingError(BillOfMaterialError):
    """A BOM module configuration snippet could not be parsed."""

    def __init__(self, content: str):
        self.content = content
        super().__init__(f"Error parsing BOM module config yaml: \n{content}")


class BillOfMaterialModuleConfigError(BillOfMaterialError):
    """A BOM module config names variables or dependencies the module lacks."""

    def __init__(
        self,
        module_name: str,
        unmatched_variable_names: Sequence[str] = (),
        available_variable_names: Sequence[str] = (),
        unmatched_dependency_names: Sequence[str] = (),
        available_dependency_names: Sequence[str] = (),
    ):
        self.module_name = module_name
        self.unmatched_variable_names = list(unmatched_variable_names)
        self.available_variable_names = list(available_variable_names)
        self.unmatched_dependency_names = list(unmatched_dependency_names)
        self.available_dependency_names = list(available_dependency_names)
        parts = []
        if self.unmatched_variable_names:
            parts.append(
                f"variables {self.unmatched_variable_names} not found "
                f"(available: {self.available_variable_names})"
            )
        if self.unmatched_dependency_names:
            parts.append(
                f"dependencies {self.unmatched_dependency_names} not found "
                f"(available: {self.available_dependency_names})"
            )
        super().__init__(f"Invalid config for module {module_name}: {'; '.join(parts)}")


class BillOfMaterialNotFound(BillOfMaterialError):
    """The catalog has no BOM entry with the requested name."""

    def __init__(self, name: str, available: Sequence[str] = ()):
        self.name = name
        self.available = list(available)
        super().__init__(f"Unable to find BOM {name}: available=[{', '.join(self.available)}]")


class BillOfMaterialVersionNotFound(BillOfMaterialError):
    """The catalog BOM entry has no matching version."""

    def __init__(self, name: str, version: Optional[str]):
        self.name = name
        self.version = version
        super().__init__(f"Unable to find version {version} of BOM {name}")


class CatalogLoadError(ResolutionError):
    """A catalog or BOM source could not be read."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Unable to load {url}: {reason}")
