"""Data models for bill of material documents."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from constants import Constants


def _drop_empty(values: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in values.items() if v is not None and v != []}


@dataclass
class BillOfMaterialModuleDependency:
    """Binds a module's dependency (by local id) to the alias of a specific module."""
    name: Optional[str] = None
    ref: Optional[str] = None
    id: Optional[str] = None
    optional: Optional[bool] = None

    @property
    def dependency_id(self) -> Optional[str]:
        return self.name or self.id

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BillOfMaterialModuleDependency":
        return cls(
            name=data.get("name"),
            ref=data.get("ref"),
            id=data.get("id"),
            optional=data.get("optional"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _drop_empty({"name": self.name, "id": self.id, "ref": self.ref, "optional": self.optional})


@dataclass
class BillOfMaterialModuleVariable:
    name: str
    value: Any = None
    description: Optional[str] = None
    alias: Optional[str] = None
    scope: Optional[str] = None
    required: Optional[bool] = None
    sensitive: Optional[bool] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BillOfMaterialModuleVariable":
        return cls(
            name=data["name"],
            value=data.get("value"),
            description=data.get("description"),
            alias=data.get("alias"),
            scope=data.get("scope"),
            required=data.get("required"),
            sensitive=data.get("sensitive"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _drop_empty({
            "name": self.name,
            "value": self.value,
            "description": self.description,
            "alias": self.alias,
            "scope": self.scope,
            "required": self.required,
            "sensitive": self.sensitive,
        })


@dataclass
class BillOfMaterialModuleProvider:
    name: str
    ref: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BillOfMaterialModuleProvider":
        return cls(name=data["name"], ref=data.get("ref"))

    def to_dict(self) -> Dict[str, Any]:
        return _drop_empty({"name": self.name, "ref": self.ref})


@dataclass
class BillOfMaterialModule:
    """A single desired-module declaration, referenced by ``id`` or ``name``."""
    id: Optional[str] = None
    name: Optional[str] = None
    alias: Optional[str] = None
    version: Optional[str] = None
    default: Optional[bool] = None
    variables: List[BillOfMaterialModuleVariable] = field(default_factory=list)
    outputs: List[Dict[str, Any]] = field(default_factory=list)
    dependencies: List[BillOfMaterialModuleDependency] = field(default_factory=list)
    providers: List[BillOfMaterialModuleProvider] = field(default_factory=list)

    @classmethod
    def from_value(cls, value: Union[str, Dict[str, Any], "BillOfMaterialModule"]) -> "BillOfMaterialModule":
        """Build a module entry from a bare id string or a mapping."""
        if isinstance(value, BillOfMaterialModule):
            return value
        if isinstance(value, str):
            return cls(id=value)
        return cls(
            id=value.get("id"),
            name=value.get("name"),
            alias=value.get("alias"),
            version=value.get("version"),
            default=value.get("default"),
            variables=[BillOfMaterialModuleVariable.from_dict(v) for v in value.get("variables") or []],
            outputs=list(value.get("outputs") or []),
            dependencies=[BillOfMaterialModuleDependency.from_dict(d) for d in value.get("dependencies") or []],
            providers=[BillOfMaterialModuleProvider.from_dict(p) for p in value.get("providers") or []],
        )

    def module_ref(self) -> Dict[str, str]:
        """Return the ``{id}`` or ``{name}`` shape used for catalog lookups."""
        if self.id:
            return {"id": self.id}
        return {"name": self.name}

    def find_dependency(self, dependency_id: str) -> Optional[BillOfMaterialModuleDependency]:
        for dep in self.dependencies:
            if dep.dependency_id == dependency_id:
                return dep
        return None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_empty({
            "id": self.id,
            "name": self.name,
            "alias": self.alias,
            "version": self.version,
            "default": self.default,
            "variables": [v.to_dict() for v in self.variables],
            "outputs": self.outputs,
            "dependencies": [d.to_dict() for d in self.dependencies],
            "providers": [p.to_dict() for p in self.providers],
        })


@dataclass
class BillOfMaterial:
    """A user's declarative list of desired modules plus overrides."""
    name: str = "default"
    modules: List[BillOfMaterialModule] = field(default_factory=list)
    variables: List[Dict[str, Any]] = field(default_factory=list)
    outputs: List[Dict[str, Any]] = field(default_factory=list)
    providers: List[Dict[str, Any]] = field(default_factory=list)
    version: Optional[str] = None
    annotations: Dict[str, str] = field(default_factory=dict)
    labels: Dict[str, str] = field(default_factory=dict)
    api_version: str = Constants.BOM_API_VERSION
    kind: str = Constants.BOM_KIND

    @staticmethod
    def is_bill_of_material(data: Any) -> bool:
        """Return True when ``data`` looks like a BOM document (has ``spec.modules``)."""
        return (
            isinstance(data, dict)
            and isinstance(data.get("spec"), dict)
            and data["spec"].get("modules") is not None
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any], name: Optional[str] = None) -> "BillOfMaterial":
        metadata = data.get("metadata") or {}
        spec = data.get("spec") or {}
        return cls(
            name=name or metadata.get("name") or "component",
            modules=[BillOfMaterialModule.from_value(m) for m in spec.get("modules") or []],
            variables=list(spec.get("variables") or []),
            outputs=list(spec.get("outputs") or []),
            providers=list(spec.get("providers") or []),
            version=spec.get("version"),
            annotations=dict(metadata.get("annotations") or {}),
            labels=dict(metadata.get("labels") or {}),
            api_version=data.get("apiVersion") or Constants.BOM_API_VERSION,
            kind=data.get("kind") or Constants.BOM_KIND,
        )

    @property
    def description(self) -> str:
        return self.annotations.get("description") or f"{self.name} bill of material"

    def apply_versions(self, modules: List[Any]) -> "BillOfMaterial":
        """Return a copy listing every resolved module with its pinned version.

        Fields from the user's original entry win over the resolved values.
        """
        new_modules: List[BillOfMaterialModule] = []
        for module in modules:
            existing = getattr(module, "bom_module", None)
            if existing is None:
                existing = next((b for b in self.modules if _matches_resolved(b, module)), None)
            entry = BillOfMaterialModule(name=module.name, alias=module.alias, version=module.version.version)
            if existing is not None:
                entry = BillOfMaterialModule(
                    id=existing.id,
                    name=existing.name or module.name,
                    alias=existing.alias or module.alias,
                    version=existing.version or module.version.version,
                    default=existing.default,
                    variables=list(existing.variables),
                    outputs=list(existing.outputs),
                    dependencies=list(existing.dependencies),
                    providers=list(existing.providers),
                )
            new_modules.append(entry)

        return BillOfMaterial(
            name=self.name,
            modules=new_modules,
            variables=list(self.variables),
            outputs=list(self.outputs),
            providers=list(self.providers),
            version=self.version,
            annotations=dict(self.annotations),
            labels=dict(self.labels),
            api_version=self.api_version,
            kind=self.kind,
        )

    def to_dict(self) -> Dict[str, Any]:
        metadata: Dict[str, Any] = {"name": self.name}
        if self.annotations:
            metadata["annotations"] = dict(self.annotations)
        if self.labels:
            metadata["labels"] = dict(self.labels)
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "metadata": metadata,
            "spec": _drop_empty({
                "version": self.version,
                "modules": [m.to_dict() for m in self.modules],
                "variables": self.variables,
                "outputs": self.outputs,
                "providers": self.providers,
            }),
        }


def _matches_resolved(bom_module: BillOfMaterialModule, module: Any) -> bool:
    if bom_module.alias:
        return bom_module.alias == module.alias
    return bom_module.name == module.name or (bool(bom_module.id) and bom_module.id == module.id)
