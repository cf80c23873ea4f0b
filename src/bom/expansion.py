"""Turn bill of material entries into an ordered list of catalog module templates."""

from __future__ import annotations

import copy
import logging
from typing import List, Sequence, Union

from errors import ModuleNotFound, ModulesNotFound
from versioning.matcher import matching_versions, sort_versions

from .models import BillOfMaterial, BillOfMaterialModule

logger = logging.getLogger(__name__)


def _entry_label(entry: BillOfMaterialModule) -> str:
    return entry.id or entry.name or "<not provided>"


def _lookup(catalog, entry: BillOfMaterialModule):
    return catalog.lookup_module(id=entry.id, name=entry.name)


def sort_modules(catalog, bom_modules: Sequence[BillOfMaterialModule]) -> List[BillOfMaterialModule]:
    """Order BOM entries so that a module comes after the listed modules it depends on.

    Dependencies are read from the first version of each catalog template.
    Ready entries are emitted by name; when none is ready (a cycle) the entry
    with the fewest outstanding dependencies goes next.
    """
    entries = [BillOfMaterialModule.from_value(m) for m in bom_modules]
    templates = [_lookup(catalog, e) for e in entries]
    names = [t.name if t is not None else (e.name or e.id or "") for e, t in zip(entries, templates)]

    pending = {}
    for i, template in enumerate(templates):
        pending[i] = {
            j for j, other in enumerate(templates)
            if j != i and template is not None and template.depends_on(other, catalog.ids_match)
        }

    result: List[BillOfMaterialModule] = []
    remaining = list(range(len(entries)))
    while remaining:
        ready = [i for i in remaining if not pending[i]]
        if ready:
            chosen = min(ready, key=lambda i: (names[i], i))
        else:
            chosen = min(remaining, key=lambda i: (len(pending[i]), names[i], i))
        remaining.remove(chosen)
        result.append(entries[chosen])
        for i in remaining:
            pending[i].discard(chosen)

    logger.debug("Sorted BOM modules: %s", [_entry_label(e) for e in result])
    return result


def expand_bill_of_material(catalog, bom: Union[BillOfMaterial, Sequence[BillOfMaterialModule], None]) -> list:
    """Look up, clone and annotate the catalog template of every BOM entry.

    Each template's versions are sorted highest first and narrowed to the
    entry's version constraint (all versions are kept when none match). The
    entry's alias wins over the template's and the entry itself is attached
    as ``bom_module``.

    Raises:
        ModuleNotFound: One entry is missing from the catalog.
        ModulesNotFound: Several entries are missing from the catalog.
    """
    if bom is None:
        bom_modules: Sequence[BillOfMaterialModule] = []
    elif isinstance(bom, BillOfMaterial):
        bom_modules = bom.modules
    else:
        bom_modules = [BillOfMaterialModule.from_value(m) for m in bom]

    missing: List[str] = []
    result = []
    for entry in sort_modules(catalog, bom_modules):
        template = _lookup(catalog, entry)
        if template is None:
            missing.append(_entry_label(entry))
            continue

        versions = sort_versions(template.versions)
        if entry.version:
            filtered = matching_versions(versions, entry.version)
            if not filtered:
                logger.debug("No versions of %s match %s; keeping all versions", template.name, entry.version)
            template.versions = filtered or versions
        else:
            template.versions = versions

        template.alias = entry.alias or template.alias
        template.bom_module = copy.deepcopy(entry)
        result.append(template)

    if len(missing) == 1:
        raise ModuleNotFound(missing[0])
    if missing:
        raise ModulesNotFound(missing)

    return result
