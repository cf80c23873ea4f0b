"""Version filtering and constraint union.

Caret and tilde comparators are filtered as plain lower bounds (``>=``); this
keeps them usable in unions with explicit ranges at the cost of not capping
the major/minor version.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Optional, Sequence, Tuple, TypeVar

import semantic_version

from errors import IncompatibleVersions, ModuleVersionNotFound

from .models import VersionComparison, VersionMatcher
from .parser import Constraint, parse_version, parse_version_matcher

logger = logging.getLogger(__name__)

T = TypeVar("T")

SortKey = Tuple[Any, ...]

_LOWER_RANK = {
    VersionComparison.GTE: 0,
    VersionComparison.MAJOR: 1,
    VersionComparison.MINOR: 2,
    VersionComparison.GT: 3,
}
_UPPER_RANK = {
    VersionComparison.LT: 0,
    VersionComparison.LTE: 1,
}


def version_key(version: semantic_version.Version) -> SortKey:
    """Return a semver precedence key (build metadata ignored)."""
    prerelease = tuple(
        (0, int(part)) if part.isdigit() else (1, part)
        for part in (version.prerelease or ())
    )
    return (version.major, version.minor, version.patch, 0 if prerelease else 1, prerelease)


def _key_for(value: str) -> Optional[SortKey]:
    parsed = parse_version(value)
    return version_key(parsed) if parsed is not None else None


def satisfies(version: str, matcher: VersionMatcher) -> bool:
    """Return True when ``version`` satisfies ``matcher``."""
    left = _key_for(version)
    right = _key_for(matcher.version)
    if left is None or right is None:
        return False

    comparator = matcher.comparator
    if comparator in (VersionComparison.GTE, VersionComparison.MAJOR, VersionComparison.MINOR):
        return left >= right
    if comparator == VersionComparison.GT:
        return left > right
    if comparator == VersionComparison.LT:
        return left < right
    if comparator == VersionComparison.LTE:
        return left <= right
    return left == right


def _version_of(item: Any) -> str:
    return item if isinstance(item, str) else item.version


def sort_versions(versions: Iterable[T]) -> List[T]:
    """Sort versions (strings or objects with ``.version``) highest first.

    Unparseable versions sort last, keeping their relative order.
    """
    items = list(versions)
    valid = [v for v in items if _key_for(_version_of(v)) is not None]
    invalid = [v for v in items if _key_for(_version_of(v)) is None]
    valid.sort(key=lambda v: _key_for(_version_of(v)), reverse=True)
    return valid + invalid


def matching_versions(versions: Iterable[T], constraint: Constraint) -> List[T]:
    """Return the versions satisfying every matcher in ``constraint``, highest first."""
    matchers = parse_version_matcher(constraint)
    return [
        v for v in sort_versions(versions)
        if all(satisfies(_version_of(v), m) for m in matchers)
    ]


def find_matching_version(module: Any, constraint: Constraint) -> Any:
    """Return the highest version of ``module`` satisfying ``constraint``.

    Raises:
        ModuleVersionNotFound: No version satisfies the constraint.
    """
    found = matching_versions(module.versions, constraint)
    if not found:
        raise ModuleVersionNotFound(module, constraint if isinstance(constraint, str)
                                    else parse_version_matcher(constraint))
    return found[0]


def _lower_sort(m: VersionMatcher) -> SortKey:
    return (_key_for(m.version), _LOWER_RANK[m.comparator], m.version)


def _upper_sort(m: VersionMatcher) -> SortKey:
    return (_key_for(m.version), _UPPER_RANK[m.comparator], m.version)


def union_of_matchers(base_matchers: Sequence[VersionMatcher],
                      new_matchers: Sequence[VersionMatcher]) -> List[VersionMatcher]:
    """Combine the constraints of independent consumers into one matcher list.

    ``=`` matchers must all name the same version, and that version must
    satisfy every other matcher; the result is then that single ``=``
    matcher. Otherwise the tightest lower bound and the tightest upper bound
    are kept. The operation is commutative and associative.

    Raises:
        IncompatibleVersions: The combined constraints cannot all hold.
    """
    matchers: List[VersionMatcher] = list(base_matchers or []) + list(new_matchers or [])

    eq_by_key = {}
    for m in matchers:
        if m.comparator != VersionComparison.EQ:
            continue
        key = _key_for(m.version)
        current = eq_by_key.get(key)
        if current is None or m.version < current.version:
            eq_by_key[key] = m
    eq_matchers = sorted(eq_by_key.values(), key=lambda m: (_key_for(m.version) or (), m.version))

    if len(eq_matchers) > 1:
        raise IncompatibleVersions(eq_matchers)

    if eq_matchers:
        pinned = eq_matchers[0]
        incompatible = [
            m for m in matchers
            if m.comparator != VersionComparison.EQ and not satisfies(pinned.version, m)
        ]
        if incompatible:
            raise IncompatibleVersions(eq_matchers + sorted(incompatible, key=str))
        return [pinned]

    results: List[VersionMatcher] = []

    lower = [m for m in matchers if m.comparator.is_lower_bound and _key_for(m.version) is not None]
    if lower:
        results.append(max(lower, key=_lower_sort))

    upper = [m for m in matchers if m.comparator.is_upper_bound and _key_for(m.version) is not None]
    if upper:
        results.append(min(upper, key=_upper_sort))

    return results


def resolve_versions(constraints: Iterable[Constraint]) -> List[VersionMatcher]:
    """Fold the constraints of several consumers into a single matcher list."""
    result: List[VersionMatcher] = []
    for constraint in constraints:
        if not constraint:
            continue
        result = union_of_matchers(result, parse_version_matcher(constraint))
    return result
