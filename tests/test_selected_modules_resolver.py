"""Tests for dependency discovery, binding and version pinning on inline catalogs."""

import pytest

from bom.expansion import expand_bill_of_material
from catalog.models import ModuleDependency, ModuleTemplate, ModuleVersion
from errors import (
    CircularModuleDependency,
    DependencyModuleNotFound,
    IncompatibleVersions,
    ModuleDependencyModuleNotFound,
    ModuleDependencyNotFound,
    ModuleVersionNotFound,
    MultipleMatchingModules,
    NoMatchingModuleVersions,
    PreferredModuleNotFound,
)
from resolver import SelectedModuleGraph, SelectedModuleResolver, pin_module_versions, resolve_bill_of_material
from resolver.selected_modules import update_alias_for_duplicate_modules
from conftest import module


def ref(name, version=None):
    data = {"source": f"github.com/example/terraform-{name}"}
    if version:
        data["version"] = version
    return data


def bom(*entries):
    return {"metadata": {"name": "test"}, "spec": {"modules": list(entries)}}


def aliases(result):
    return [m.alias for m in result.modules]


@pytest.fixture
def vpc_catalog(make_catalog):
    """Three vpc implementations sharing an alias and a hub that fans out to all of them."""
    return make_catalog([
        module("vpc-a", interfaces=["vpc"], alias="vpc"),
        module("vpc-b", interfaces=["vpc"], alias="vpc"),
        module("vpc-c", interfaces=["vpc"], alias="vpc"),
        module("transit-gateway", dependencies=[{"id": "vpcs", "interface": "vpc", "discriminator": "*"}]),
    ])


@pytest.fixture
def db_catalog(make_catalog):
    """Two modules implementing the db interface and an app that needs one."""
    return make_catalog([
        module("db-a", interfaces=["db"]),
        module("db-b", interfaces=["db"]),
        module("app", dependencies=[{"id": "db", "interface": "db"}]),
    ])


class TestDuplicateAliases:

    def test_suffixes_in_declaration_order(self):
        templates = [
            ModuleTemplate(id="github.com/example/terraform-ns", name="namespace"),
            ModuleTemplate(id="github.com/example/terraform-ns", name="namespace"),
            ModuleTemplate(id="github.com/example/terraform-cluster", name="cluster-module", alias="cluster"),
            ModuleTemplate(id="github.com/example/terraform-ns", name="namespace"),
        ]
        result = update_alias_for_duplicate_modules(templates)
        assert [m.alias for m in result] == ["namespace", "namespace1", "cluster", "namespace2"]
        assert templates[0].alias is None


class TestWildcard:
    """A "*" discriminator binds every matching module."""

    def test_pulls_every_catalog_candidate(self, vpc_catalog):
        result = resolve_bill_of_material(vpc_catalog, bom({"name": "transit-gateway"}))

        assert aliases(result) == ["transit-gateway", "vpc", "vpc1", "vpc2"]
        assert [m.name for m in result.modules[1:]] == ["vpc-a", "vpc-b", "vpc-c"]
        assert result.dependency_aliases("transit-gateway", "vpcs") == ["vpc", "vpc1", "vpc2"]

    def test_binds_every_selected_module(self, vpc_catalog):
        result = resolve_bill_of_material(vpc_catalog, bom(
            {"name": "transit-gateway"}, {"name": "vpc-a"}, {"name": "vpc-b"}, {"name": "vpc-c"},
        ))

        assert aliases(result) == ["vpc", "vpc1", "vpc2", "transit-gateway"]
        assert len(result.modules) == 4
        assert result.dependency_aliases("transit-gateway", "vpcs") == ["vpc", "vpc1", "vpc2"]

    def test_selected_module_does_not_hide_other_candidates(self, vpc_catalog):
        """With one candidate already selected the rest are still pulled from the catalog."""
        result = resolve_bill_of_material(vpc_catalog, bom({"name": "transit-gateway"}, {"name": "vpc-a"}))

        assert aliases(result) == ["vpc", "transit-gateway", "vpc1", "vpc2"]
        assert [m.name for m in result.modules] == ["vpc-a", "transit-gateway", "vpc-b", "vpc-c"]
        assert result.dependency_aliases("transit-gateway", "vpcs") == ["vpc", "vpc1", "vpc2"]

    def test_optional_wildcard_binds_selected_only(self, make_catalog):
        catalog = make_catalog([
            module("vpc-a", interfaces=["vpc"]),
            module("vpc-b", interfaces=["vpc"]),
            module("transit-gateway", dependencies=[
                {"id": "vpcs", "interface": "vpc", "discriminator": "*", "optional": True},
            ]),
        ])
        result = resolve_bill_of_material(catalog, bom({"name": "transit-gateway"}, {"name": "vpc-a"}))

        assert [m.name for m in result.modules] == ["vpc-a", "transit-gateway"]
        assert result.dependency_aliases("transit-gateway", "vpcs") == ["vpc-a"]

    def test_no_candidates(self, make_catalog):
        catalog = make_catalog([
            module("hub", dependencies=[{"id": "spokes", "interface": "spoke", "discriminator": "*"}]),
        ])
        with pytest.raises(DependencyModuleNotFound):
            resolve_bill_of_material(catalog, bom({"name": "hub"}))


class TestWorkingSetMatching:
    """Binding to modules already selected."""

    def test_strict_ambiguity(self, db_catalog):
        with pytest.raises(MultipleMatchingModules) as exc_info:
            resolve_bill_of_material(db_catalog, bom({"name": "db-a"}, {"name": "db-b"}, {"name": "app"}))
        assert exc_info.value.dependency_id == "db"
        assert exc_info.value.module_id == "github.com/example/terraform-app"

    def test_non_strict_takes_first(self, db_catalog):
        result = resolve_bill_of_material(
            db_catalog, bom({"name": "db-a"}, {"name": "db-b"}, {"name": "app"}), strict=False,
        )
        assert result.dependency_aliases("app", "db") == ["db-a"]

    def test_bom_dependency_ref(self, db_catalog):
        """A BOM dependency ref selects the module with that alias."""
        result = resolve_bill_of_material(db_catalog, bom(
            {"name": "db-a"},
            {"name": "db-b"},
            {"name": "app", "dependencies": [{"name": "db", "ref": "db-b"}]},
        ))
        assert result.dependency_aliases("app", "db") == ["db-b"]

    def test_single_default_wins(self, make_catalog):
        catalog = make_catalog([
            module("db-a", interfaces=["db"]),
            module("db-b", interfaces=["db"], default=True),
            module("app", dependencies=[{"id": "db", "interface": "db"}]),
        ])
        result = resolve_bill_of_material(catalog, bom(
            {"name": "db-a", "alias": "primary"},
            {"name": "db-b", "alias": "secondary"},
            {"name": "app"},
        ))
        assert result.dependency_aliases("app", "db") == ["secondary"]

    def test_mutual_references_bind_to_working_set(self, make_catalog):
        """Modules referring to each other bind without pulling new copies."""
        catalog = make_catalog([
            module("a", dependencies=[{"id": "b", "refs": [ref("b")]}]),
            module("b", dependencies=[{"id": "a", "refs": [ref("a")]}]),
        ])
        result = resolve_bill_of_material(catalog, bom({"name": "a"}))

        assert aliases(result) == ["a", "b"]
        assert result.dependency_aliases("a", "b") == ["b"]
        assert result.dependency_aliases("b", "a") == ["a"]


class TestCatalogMatching:
    """Pulling new modules from the catalog."""

    def test_strict_ambiguity(self, db_catalog):
        with pytest.raises(MultipleMatchingModules) as exc_info:
            resolve_bill_of_material(db_catalog, bom({"name": "app"}))
        assert len(exc_info.value.candidates) == 2

    def test_non_strict_takes_first(self, db_catalog):
        result = resolve_bill_of_material(db_catalog, bom({"name": "app"}), strict=False)
        assert aliases(result) == ["app", "db-a"]

    def test_preferred(self, make_catalog):
        catalog = make_catalog([
            module("db-a", interfaces=["db"]),
            module("db-b", interfaces=["db"]),
            module("app", dependencies=[
                {"id": "db", "interface": "db", "preferred": "https://github.com/example/terraform-db-b.git"},
            ]),
        ])
        result = resolve_bill_of_material(catalog, bom({"name": "app"}))
        assert aliases(result) == ["app", "db-b"]

    def test_preferred_not_found(self, make_catalog):
        catalog = make_catalog([
            module("db-a", interfaces=["db"]),
            module("db-b", interfaces=["db"]),
            module("app", dependencies=[
                {"id": "db", "interface": "db", "preferred": "github.com/example/terraform-db-c"},
            ]),
        ])
        with pytest.raises(PreferredModuleNotFound) as exc_info:
            resolve_bill_of_material(catalog, bom({"name": "app"}))
        assert exc_info.value.preferred == "github.com/example/terraform-db-c"

    def test_discriminator_sets_alias(self, make_catalog):
        catalog = make_catalog([
            module("db-a", interfaces=["db"]),
            module("app", dependencies=[{"id": "db", "interface": "db", "discriminator": "appdb"}]),
        ])
        result = resolve_bill_of_material(catalog, bom({"name": "app"}))
        assert aliases(result) == ["app", "appdb"]

    def test_pulled_aliases_are_unique(self, make_catalog):
        catalog = make_catalog([
            module("db-a", interfaces=["db"], alias="db"),
            module("db-b", interfaces=["db"], alias="db"),
            module("app", dependencies=[{"id": "db", "refs": [ref("db-b")]}]),
        ])
        result = resolve_bill_of_material(catalog, bom({"name": "db-a"}, {"name": "app"}))
        assert aliases(result) == ["app", "db", "db1"]
        assert result.dependency_aliases("app", "db") == ["db1"]
        assert result.module("db1").name == "db-b"

    def test_missing_dependency(self, make_catalog):
        catalog = make_catalog([module("app", dependencies=[{"id": "db", "refs": [ref("missing")]}])])
        with pytest.raises(DependencyModuleNotFound) as exc_info:
            resolve_bill_of_material(catalog, bom({"name": "app"}))
        assert exc_info.value.dependency_id == "db"

    def test_optional_missing_dependency(self, make_catalog):
        catalog = make_catalog([
            module("app", dependencies=[{"id": "db", "refs": [ref("missing")], "optional": True}]),
        ])
        result = resolve_bill_of_material(catalog, bom({"name": "app"}))

        assert aliases(result) == ["app"]
        assert result.dependency_aliases("app", "db") == []
        assert result.to_dict()["modules"][0]["dependencies"] == [{"id": "db"}]

    def test_bom_marks_dependency_optional(self, make_catalog):
        catalog = make_catalog([module("app", dependencies=[{"id": "db", "refs": [ref("missing")]}])])
        result = resolve_bill_of_material(
            catalog, bom({"name": "app", "dependencies": [{"name": "db", "optional": True}]}),
        )
        assert aliases(result) == ["app"]

    def test_manual_resolution_without_discriminator_is_skipped(self, make_catalog):
        catalog = make_catalog([
            module("db-a", interfaces=["db"]),
            module("app", dependencies=[{"id": "db", "interface": "db", "manualResolution": True}]),
        ])
        result = resolve_bill_of_material(catalog, bom({"name": "app"}))
        assert aliases(result) == ["app"]

    def test_self_reference_is_circular(self, make_catalog):
        catalog = make_catalog([
            module("loop", dependencies=[{"id": "next", "refs": [ref("loop")], "discriminator": "loop"}]),
        ])
        with pytest.raises(CircularModuleDependency) as exc_info:
            resolve_bill_of_material(catalog, bom({"name": "loop"}))
        assert exc_info.value.chain == ["loop", "loop"]


class TestVersionConstraints:
    """Edge constraints narrow versions; pinning takes the highest survivor."""

    @pytest.fixture
    def base_catalog(self, make_catalog):
        def _make(constraint_a, constraint_b=None):
            modules = [
                module("base", versions=("1.0.0", "2.0.0")),
                module("consumer-a", dependencies=[{"id": "base", "refs": [ref("base", constraint_a)]}]),
            ]
            if constraint_b:
                modules.append(
                    module("consumer-b", dependencies=[{"id": "base", "refs": [ref("base", constraint_b)]}])
                )
            return make_catalog(modules)
        return _make

    def test_highest_matching_version(self, base_catalog):
        result = resolve_bill_of_material(base_catalog("<2.0.0"), bom({"name": "consumer-a"}))
        assert result.module("base").version.version == "1.0.0"

    def test_unconstrained_takes_latest(self, base_catalog):
        result = resolve_bill_of_material(base_catalog(">=1.0.0"), bom({"name": "consumer-a"}))
        assert result.module("base").version.version == "2.0.0"

    def test_no_matching_versions(self, base_catalog):
        with pytest.raises(NoMatchingModuleVersions) as exc_info:
            resolve_bill_of_material(base_catalog(">=3.0.0"), bom({"name": "consumer-a"}))
        assert exc_info.value.module_id == "github.com/example/terraform-base"

    def test_incompatible_pins(self, base_catalog):
        with pytest.raises(IncompatibleVersions):
            resolve_bill_of_material(
                base_catalog("=1.0.0", "2.0.0"), bom({"name": "consumer-a"}, {"name": "consumer-b"}),
            )

    def test_disjoint_ranges(self, base_catalog):
        with pytest.raises(ModuleVersionNotFound) as exc_info:
            resolve_bill_of_material(
                base_catalog(">=1.5.0", "<1.5.0"), bom({"name": "consumer-a"}, {"name": "consumer-b"}),
            )
        assert exc_info.value.module_id == "github.com/example/terraform-base"

    def test_constraints_from_all_consumers(self, base_catalog):
        result = resolve_bill_of_material(
            base_catalog(">=1.0.0", "<2.0.0"), bom({"name": "consumer-a"}, {"name": "consumer-b"}),
        )
        assert result.module("base").version.version == "1.0.0"
        assert aliases(result) == ["consumer-a", "consumer-b", "base"]

    @pytest.fixture
    def older_version_catalog(self, make_catalog):
        """``a`` only needs ``b`` in 1.0.0; ``c`` pins ``a`` to that version."""
        def _make(b_source="b"):
            return make_catalog([
                {
                    "id": "github.com/example/terraform-a",
                    "name": "a",
                    "versions": [
                        {"version": "2.0.0"},
                        {"version": "1.0.0", "dependencies": [{"id": "b", "refs": [ref(b_source)]}]},
                    ],
                },
                module("b"),
                module("c", dependencies=[{"id": "a", "refs": [ref("a", "=1.0.0")]}]),
            ])
        return _make

    def test_dependencies_of_constrained_version_are_resolved(self, older_version_catalog):
        result = resolve_bill_of_material(older_version_catalog(), bom({"name": "c"}))

        assert aliases(result) == ["c", "a", "b"]
        assert result.module("a").version.version == "1.0.0"
        assert result.dependency_aliases("a", "b") == ["b"]

    def test_missing_dependency_of_constrained_version(self, older_version_catalog):
        with pytest.raises(DependencyModuleNotFound) as exc_info:
            resolve_bill_of_material(older_version_catalog("missing"), bom({"name": "c"}))
        assert exc_info.value.dependency_id == "b"

    def test_interface_edges_are_not_versioned(self, make_catalog):
        catalog = make_catalog([
            module("db-a", versions=("1.0.0", "2.0.0"), interfaces=["db"]),
            module("app", dependencies=[
                {"id": "db", "interface": "db", "refs": [ref("db-a", "<2.0.0")]},
            ]),
        ])
        result = resolve_bill_of_material(catalog, bom({"name": "app"}))
        assert result.module("db-a").version.version == "2.0.0"


class TestPinning:
    """Pinning over a hand-built graph."""

    def test_unbound_required_edge(self, catalog):
        graph = SelectedModuleGraph()
        index = graph.add(ModuleTemplate(
            id="github.com/example/terraform-app",
            name="app",
            alias="app",
            versions=[ModuleVersion("1.0.0", dependencies=[ModuleDependency(id="db", interface="db")])],
        ))
        graph.edges[index] = [ModuleDependency(id="db", interface="db")]

        with pytest.raises(ModuleDependencyModuleNotFound) as exc_info:
            pin_module_versions(catalog, graph)
        assert exc_info.value.dependency_id == "db"

    def test_unbound_dependency_of_pinned_version(self, catalog):
        """A dependency the pinned version declares without a bound edge is an error."""
        graph = SelectedModuleGraph()
        graph.add(ModuleTemplate(
            id="github.com/example/terraform-app",
            name="app",
            alias="app",
            versions=[ModuleVersion("1.0.0", dependencies=[ModuleDependency(id="db", interface="db")])],
        ))

        with pytest.raises(ModuleDependencyModuleNotFound) as exc_info:
            pin_module_versions(catalog, graph)
        assert exc_info.value.dependency_id == "db"

    def test_optional_dependency_of_pinned_version_may_stay_unbound(self, catalog):
        graph = SelectedModuleGraph()
        graph.add(ModuleTemplate(
            id="github.com/example/terraform-app",
            name="app",
            alias="app",
            versions=[ModuleVersion("1.0.0", dependencies=[
                ModuleDependency(id="db", interface="db", optional=True),
            ])],
        ))

        result = pin_module_versions(catalog, graph)
        assert result[0].version.dependencies[0].targets == ()

    def test_module_ref_to_undeclared_dependency(self, make_catalog):
        catalog = make_catalog([])
        template = ModuleTemplate.from_dict({
            "id": "github.com/example/terraform-app",
            "name": "app",
            "versions": [{
                "version": "1.0.0",
                "variables": [{"name": "kubeconfig", "moduleRef": {"id": "cluster", "output": "config"}}],
            }],
        })
        with pytest.raises(ModuleDependencyNotFound) as exc_info:
            SelectedModuleResolver(catalog).resolve([template])
        assert exc_info.value.dependency_id == "cluster"

    def test_resolver_is_reusable(self, db_catalog):
        """A resolver starts from an empty working set on every call."""
        resolver = SelectedModuleResolver(db_catalog, strict=False)
        seeds = expand_bill_of_material(db_catalog, [{"name": "app"}])

        first = resolver.resolve(seeds)
        second = resolver.resolve(seeds)

        assert [m.alias for m in first] == [m.alias for m in second] == ["app", "db-a"]
