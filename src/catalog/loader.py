"""Catalog and bill of material acquisition.

Documents are read from local paths, ``file:`` URLs or ``http(s)://`` URLs
and merged into a single catalog. When the same module name appears in more
than one document the later document wins and the earlier id is recorded as
an alias of the surviving id.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union
from urllib.parse import unquote, urlsplit

import yaml

from constants import Constants
from common.http_client import get_text
from common.logging_utils import extra_context, is_debug_enabled, safe_url
from errors import BillOfMaterialParsingError, CatalogLoadError
from bom.models import BillOfMaterial

from .catalog import Catalog

logger = logging.getLogger(__name__)


def _read_source(url: str) -> str:
    """Return the text behind ``url`` (path, file: URL or http(s) URL)."""
    if url.startswith(("http://", "https://")):
        status, text = get_text(url)
        if status == 0:
            raise CatalogLoadError(safe_url(url), text)
        if status >= 400:
            raise CatalogLoadError(safe_url(url), f"HTTP {status}")
        return text

    path = unquote(urlsplit(url).path) if url.startswith("file:") else url
    try:
        with open(os.path.expanduser(path), "r", encoding="utf-8") as fh:
            return fh.read()
    except OSError as exc:
        raise CatalogLoadError(url, exc.strerror or str(exc)) from exc


def _parse_document(text: str, url: str) -> Dict[str, Any]:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise CatalogLoadError(url, f"invalid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise CatalogLoadError(url, "document is not a mapping")
    return data


def _is_catalog_kind(data: Dict[str, Any]) -> bool:
    return (
        data.get("kind") == Constants.CATALOG_KIND
        or ("modules" in data and "versions" not in data)
        or "categories" in data
    )


def _is_module(data: Dict[str, Any]) -> bool:
    return bool(data.get("name")) and "versions" in data


def _bom_entry(data: Dict[str, Any]) -> Dict[str, Any]:
    metadata = data.get("metadata") or {}
    annotations = metadata.get("annotations") or {}
    spec = data.get("spec") or {}
    return {
        "name": metadata.get("name"),
        "displayName": annotations.get("displayName") or metadata.get("name"),
        "description": annotations.get("description") or "",
        "category": "other",
        "type": "bom",
        "tags": [],
        "versions": [{"version": spec.get("version") or "v1.0.0", "content": data}],
    }


def _flattened_modules(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    if data.get("modules") is not None:
        return list(data["modules"])
    modules = []
    for category in data.get("categories") or []:
        for module in category.get("modules") or []:
            modules.append({**module, "category": category.get("category")})
    return modules


def _as_catalog_document(data: Dict[str, Any], url: str) -> Dict[str, Any]:
    """Normalize any supported document into a v2 catalog mapping."""
    if data.get("kind") == Constants.BOM_KIND or BillOfMaterial.is_bill_of_material(data):
        return {"modules": [], "boms": [_bom_entry(data)]}
    if _is_catalog_kind(data):
        return {
            "modules": _flattened_modules(data),
            "providers": list(data.get("providers") or []),
            "aliases": list(data.get("aliases") or []),
            "boms": list(data.get("boms") or []),
            "metadata": dict(data.get("metadata") or {}),
        }
    if _is_module(data):
        module_id = data.get("id") or os.path.dirname(os.path.abspath(url))
        return {"modules": [{**data, "category": "other", "id": module_id}]}

    logger.warning("Ignoring unrecognized document: %s", safe_url(url))
    return {"modules": []}


def _unique_by(items: Iterable[Dict[str, Any]], key: str) -> List[Dict[str, Any]]:
    seen = set()
    result = []
    for item in items:
        value = item.get(key)
        if value in seen:
            continue
        seen.add(value)
        result.append(item)
    return result


def merge_catalogs(base: Dict[str, Any], new: Dict[str, Any]) -> Dict[str, Any]:
    """Merge ``new`` over ``base``; entries in ``new`` win on name/id collisions."""
    aliases = [dict(a, aliases=list(a.get("aliases") or []))
               for a in _unique_by(list(new.get("aliases") or []) + list(base.get("aliases") or []), "id")]

    modules: List[Dict[str, Any]] = []
    by_name: Dict[str, Dict[str, Any]] = {}
    for module in list(new.get("modules") or []) + list(base.get("modules") or []):
        kept = by_name.get(module.get("name"))
        if kept is None:
            by_name[module.get("name")] = module
            modules.append(module)
            continue
        if module.get("id") == kept.get("id"):
            continue
        existing = next((a for a in aliases if a["id"] == module.get("id")), None)
        if existing is not None:
            existing["id"] = kept["id"]
            existing["aliases"].append(module["id"])
        else:
            aliases.append({"id": kept["id"], "aliases": [module["id"]]})

    return {
        "kind": Constants.CATALOG_KIND,
        "apiVersion": Constants.CATALOG_API_V2,
        "modules": modules,
        "providers": _unique_by(list(new.get("providers") or []) + list(base.get("providers") or []), "name"),
        "aliases": aliases,
        "boms": _unique_by(list(new.get("boms") or []) + list(base.get("boms") or []), "name"),
        "metadata": {"name": "Merged Catalog", **(base.get("metadata") or {}), **(new.get("metadata") or {})},
    }


def load_catalog_document(urls: Union[str, Sequence[str]]) -> Dict[str, Any]:
    """Read and merge the documents at ``urls`` into one v2 catalog mapping."""
    url_list = [urls] if isinstance(urls, str) else list(urls)
    if not url_list:
        url_list = [Constants.DEFAULT_CATALOG_URL]

    logger.info("Loading catalog from url(s): %s", ", ".join(safe_url(u) for u in url_list))

    merged: Dict[str, Any] = {}
    for url in url_list:
        document = _as_catalog_document(_parse_document(_read_source(url), url), url)
        if is_debug_enabled(logger):
            logger.debug(
                "Catalog document loaded",
                extra=extra_context(
                    event="catalog_load",
                    component="catalog_loader",
                    target=safe_url(url),
                    modules=len(document.get("modules") or []),
                ),
            )
        merged = merge_catalogs(merged, document)

    for provider in merged.get("providers") or []:
        provider.setdefault("dependencies", [])
        provider.setdefault("variables", [])

    return merged


def load_catalog(urls: Union[str, Sequence[str]]) -> Catalog:
    """Load and merge one or more catalog sources.

    Raises:
        CatalogLoadError: A source cannot be read or is not a YAML mapping.
    """
    catalog = Catalog.from_dict(load_catalog_document(urls))
    logger.info("Catalog loaded with %d modules", len(catalog))
    return catalog


def parse_bill_of_material(text: str, name: Optional[str] = None) -> BillOfMaterial:
    """Parse BOM YAML text.

    Raises:
        BillOfMaterialParsingError: The text is not a BOM document.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise BillOfMaterialParsingError(text, str(exc)) from exc
    if not BillOfMaterial.is_bill_of_material(data):
        raise BillOfMaterialParsingError(text, "missing spec.modules")
    return BillOfMaterial.from_dict(data, name=name)


def load_bill_of_material(path_or_url: str) -> BillOfMaterial:
    """Read and parse a BOM from a path or URL."""
    return parse_bill_of_material(_read_source(path_or_url))
