"""Shared fixtures for the resolver test-suite."""

import os

import pytest

from catalog.catalog import Catalog
from catalog.loader import load_catalog
from common.http_client import clear_cache

FIXTURES_DIR = os.path.join(os.path.dirname(__file__), "fixtures")


@pytest.fixture
def fixtures_dir():
    """Directory holding the YAML fixtures."""
    return FIXTURES_DIR


@pytest.fixture
def catalog():
    """The fixture catalog loaded through the real loader."""
    return load_catalog(os.path.join(FIXTURES_DIR, "catalog.yaml"))


@pytest.fixture
def make_catalog():
    """Build a Catalog from inline module dicts."""
    def _make(modules, providers=None, aliases=None):
        return Catalog.from_dict({
            "modules": modules,
            "providers": providers or [],
            "aliases": aliases or [],
        })
    return _make


@pytest.fixture(autouse=True)
def _clear_http_cache():
    clear_cache()
    yield
    clear_cache()


def module(name, versions=("1.0.0",), dependencies=None, interfaces=None, alias=None, **extra):
    """Inline module dict with the same dependencies on every version."""
    data = {
        "id": f"github.com/example/terraform-{name}",
        "name": name,
        "interfaces": list(interfaces or []),
        "versions": [
            {"version": v, "dependencies": list(dependencies or [])} for v in versions
        ],
    }
    if alias:
        data["alias"] = alias
    data.update(extra)
    return data


@pytest.fixture
def module_dict():
    """Factory for inline module dicts."""
    return module
