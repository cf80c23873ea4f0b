"""Data models for catalog modules, versions, dependencies and providers."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from bom.models import BillOfMaterialModule
from errors import ModuleDependencyNotFound

_PROVIDER_FROM_ID = re.compile(r".*terraform-([^-]+)-.*", re.IGNORECASE)


def _drop_empty(values: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in values.items() if v is not None and v != [] and v is not False}


def clean_id(module_id: Optional[str]) -> str:
    """Strip the scheme and a trailing ``.git`` from a module id."""
    value = module_id or ""
    value = re.sub(r"\.git$", "", value)
    return re.sub(r"^https?://", "", value)


@dataclass
class ModuleRef:
    """An explicit candidate for a dependency, with an optional version constraint."""
    source: str
    version: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModuleRef":
        return cls(source=data["source"], version=data.get("version"))

    def to_dict(self) -> Dict[str, Any]:
        return _drop_empty({"source": self.source, "version": self.version})


@dataclass
class ModuleDependency:
    """A dependency edge declared by a module version.

    ``targets`` is empty until the resolver binds the edge; it then holds
    the positions of the bound modules in the resolution result.
    """
    id: str
    refs: List[ModuleRef] = field(default_factory=list)
    interface: Optional[str] = None
    discriminator: Optional[str] = None
    preferred: Optional[str] = None
    optional: bool = False
    manual_resolution: bool = False
    targets: Tuple[int, ...] = ()

    @property
    def is_resolved(self) -> bool:
        return bool(self.targets)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModuleDependency":
        return cls(
            id=data["id"],
            refs=[ModuleRef.from_dict(r) for r in data.get("refs") or []],
            interface=data.get("interface"),
            discriminator=data.get("discriminator"),
            preferred=data.get("preferred"),
            optional=bool(data.get("optional", False)),
            manual_resolution=bool(data.get("manualResolution", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _drop_empty({
            "id": self.id,
            "refs": [r.to_dict() for r in self.refs],
            "interface": self.interface,
            "discriminator": self.discriminator,
            "preferred": self.preferred,
            "optional": self.optional,
            "manualResolution": self.manual_resolution,
        })


@dataclass
class ModuleOutputRef:
    id: str
    output: str


@dataclass
class ModuleVariable:
    name: str
    type: str = "string"
    alias: Optional[str] = None
    scope: Optional[str] = None
    description: Optional[str] = None
    optional: bool = False
    default: Any = None
    module_ref: Optional[ModuleOutputRef] = None
    mapper: Optional[str] = None
    important: bool = False
    sensitive: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModuleVariable":
        module_ref = data.get("moduleRef")
        return cls(
            name=data["name"],
            type=data.get("type") or "string",
            alias=data.get("alias"),
            scope=data.get("scope"),
            description=data.get("description"),
            optional=bool(data.get("optional", False)),
            default=data.get("default", data.get("defaultValue")),
            module_ref=ModuleOutputRef(module_ref["id"], module_ref["output"]) if module_ref else None,
            mapper=data.get("mapper"),
            important=bool(data.get("important", False)),
            sensitive=bool(data.get("sensitive", False)),
        )


@dataclass
class ModuleOutput:
    name: str
    description: Optional[str] = None
    sensitive: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModuleOutput":
        return cls(name=data["name"], description=data.get("description"),
                   sensitive=bool(data.get("sensitive", False)))


@dataclass
class ProviderModel:
    """A provider requirement, or the catalog's definition of one."""
    name: str
    alias: Optional[str] = None
    source: Optional[str] = None
    ref: Optional[str] = None
    dependencies: List[ModuleDependency] = field(default_factory=list)
    variables: List[ModuleVariable] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProviderModel":
        return cls(
            name=data["name"],
            alias=data.get("alias"),
            source=data.get("source"),
            ref=data.get("ref"),
            dependencies=[ModuleDependency.from_dict(d) for d in data.get("dependencies") or []],
            variables=[ModuleVariable.from_dict(v) for v in data.get("variables") or []],
        )

    def to_dict(self) -> Dict[str, Any]:
        return _drop_empty({"name": self.name, "alias": self.alias, "source": self.source, "ref": self.ref})


@dataclass
class ModuleVersion:
    version: str
    dependencies: List[ModuleDependency] = field(default_factory=list)
    variables: List[ModuleVariable] = field(default_factory=list)
    outputs: List[ModuleOutput] = field(default_factory=list)
    providers: List[ProviderModel] = field(default_factory=list)
    terraform_version: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModuleVersion":
        return cls(
            version=str(data["version"]),
            dependencies=[ModuleDependency.from_dict(d) for d in data.get("dependencies") or []],
            variables=[ModuleVariable.from_dict(v) for v in data.get("variables") or []],
            outputs=[ModuleOutput.from_dict(o) for o in data.get("outputs") or []],
            providers=[ProviderModel.from_dict(p) for p in data.get("providers") or []],
            terraform_version=data.get("terraformVersion"),
        )

    def find_dependency(self, dependency_id: str) -> Optional[ModuleDependency]:
        for dep in self.dependencies:
            if dep.id == dependency_id:
                return dep
        return None


@dataclass
class ModuleTemplate:
    """A catalog module with all of its versions."""
    id: str
    name: str
    versions: List[ModuleVersion] = field(default_factory=list)
    alias: Optional[str] = None
    category: str = "other"
    interfaces: List[str] = field(default_factory=list)
    platforms: List[str] = field(default_factory=list)
    provider: Optional[str] = None
    display_name: Optional[str] = None
    description: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    default: bool = False
    original_alias: Optional[str] = None
    bom_module: Optional[BillOfMaterialModule] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], category: Optional[str] = None) -> "ModuleTemplate":
        return cls(
            id=data["id"],
            name=data["name"],
            versions=[ModuleVersion.from_dict(v) for v in data.get("versions") or []],
            alias=data.get("alias"),
            category=category or data.get("category") or "other",
            interfaces=list(data.get("interfaces") or []),
            platforms=list(data.get("platforms") or []),
            provider=data.get("provider"),
            display_name=data.get("displayName"),
            description=data.get("description"),
            tags=list(data.get("tags") or []),
            default=bool(data.get("default", False)),
            original_alias=data.get("originalAlias") or data.get("alias") or data["name"],
        )

    @property
    def key(self) -> str:
        """Identity used for duplicate detection: the alias, else the name."""
        return self.alias or self.name

    @property
    def module_provider(self) -> str:
        """The cloud provider of the module, from its declaration or its id."""
        if self.provider:
            return self.provider
        match = _PROVIDER_FROM_ID.match(self.id)
        return match.group(1).lower() if match else ""

    def depends_on(self, other: Optional["ModuleTemplate"],
                   ids_match: Optional[Callable[[str, str], bool]] = None) -> bool:
        """Return True when the first version refers to ``other`` (or fans out to everything)."""
        if other is None or not self.versions:
            return False
        dependencies = self.versions[0].dependencies
        if any(d.discriminator == "*" for d in dependencies):
            return True
        same = ids_match or (lambda a, b: clean_id(a) == clean_id(b))
        return any(same(ref.source, other.id) for d in dependencies for ref in d.refs)


@dataclass
class SingleModuleVersion:
    """A resolved module instance narrowed to exactly one version."""
    id: str
    name: str
    alias: str
    version: ModuleVersion
    category: str = "other"
    interfaces: List[str] = field(default_factory=list)
    platforms: List[str] = field(default_factory=list)
    provider: Optional[str] = None
    display_name: Optional[str] = None
    description: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    bom_module: Optional[BillOfMaterialModule] = None

    @classmethod
    def from_template(cls, module: ModuleTemplate, version: ModuleVersion) -> "SingleModuleVersion":
        return cls(
            id=module.id,
            name=module.name,
            alias=module.alias or module.name,
            version=version,
            category=module.category,
            interfaces=list(module.interfaces),
            platforms=list(module.platforms),
            provider=module.provider,
            display_name=module.display_name,
            description=module.description,
            tags=list(module.tags),
            bom_module=module.bom_module,
        )

    def get_dependency(self, dependency_id: str) -> ModuleDependency:
        """Return the dependency with local id ``dependency_id``.

        Raises:
            ModuleDependencyNotFound: The module does not declare it.
        """
        dep = self.version.find_dependency(dependency_id)
        if dep is None:
            raise ModuleDependencyNotFound(dependency_id, self, [d.id for d in self.version.dependencies])
        return dep

    def dependency_modules(self, dependency_id: str,
                           modules: List["SingleModuleVersion"]) -> List["SingleModuleVersion"]:
        """Return the modules bound to a dependency, looked up in the resolution result."""
        return [modules[i] for i in self.get_dependency(dependency_id).targets]

    def to_dict(self, modules: Optional[List["SingleModuleVersion"]] = None) -> Dict[str, Any]:
        dependencies = []
        for dep in self.version.dependencies:
            entry: Dict[str, Any] = {"id": dep.id}
            if modules is not None and dep.targets:
                entry["modules"] = [modules[i].alias for i in dep.targets]
            dependencies.append(entry)
        return _drop_empty({
            "id": self.id,
            "name": self.name,
            "alias": self.alias,
            "version": self.version.version,
            "dependencies": dependencies,
            "providers": [p.to_dict() for p in self.version.providers],
        })


@dataclass
class ModuleIdAlias:
    """Maps legacy or renamed module ids onto a canonical id."""
    id: str
    aliases: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModuleIdAlias":
        return cls(id=data["id"], aliases=list(data.get("aliases") or []))


@dataclass
class BillOfMaterialVersion:
    version: str
    metadata_url: Optional[str] = None
    content: Optional[Dict[str, Any]] = None


@dataclass
class BillOfMaterialEntry:
    """A BOM published in the catalog."""
    name: str
    display_name: Optional[str] = None
    description: str = ""
    category: str = "other"
    type: str = "bom"
    tags: List[str] = field(default_factory=list)
    versions: List[BillOfMaterialVersion] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BillOfMaterialEntry":
        return cls(
            name=data["name"],
            display_name=data.get("displayName"),
            description=data.get("description") or "",
            category=data.get("category") or "other",
            type=data.get("type") or "bom",
            tags=list(data.get("tags") or []),
            versions=[
                BillOfMaterialVersion(
                    version=str(v["version"]),
                    metadata_url=v.get("metadataUrl"),
                    content=v.get("content"),
                )
                for v in data.get("versions") or []
            ],
        )
