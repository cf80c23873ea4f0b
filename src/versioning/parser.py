"""Version constraint parsing utilities."""

import re
from typing import List, Optional, Sequence, Union

import semantic_version

from errors import InvalidVersionConstraint

from .models import VersionComparison, VersionMatcher

_SEMVER = r"\d+\.\d+\.\d+(?:-[0-9A-Za-z.\-]+)?(?:\+[0-9A-Za-z.\-]+)?"

# Hyphen ranges: "1.2.3 - 1.4.5" => ">=1.2.3, <=1.4.5"
_RANGE_RE = re.compile(rf"^\s*v?({_SEMVER})\s+-\s+v?({_SEMVER})\s*$")
_COMPARATOR_RE = re.compile(rf"(\^|~|>=|<=|>|<|=)?\s*v?({_SEMVER})")

_UNCONSTRAINED = ("", "*", "latest", "x")

Constraint = Union[None, str, Sequence[VersionMatcher]]


def parse_version(value: Optional[str]) -> Optional[semantic_version.Version]:
    """Parse a module version string, tolerating a leading ``v`` and short forms.

    Returns None for strings that are not versions at all.
    """
    if not value:
        return None
    text = str(value).strip()
    if text[:1] in ("v", "V"):
        text = text[1:]
    try:
        return semantic_version.Version(text)
    except ValueError:
        pass
    try:
        return semantic_version.Version.coerce(text)
    except ValueError:
        return None


def normalize_version(value: str) -> str:
    """Return the canonical string form of a version, or the input if unparseable."""
    parsed = parse_version(value)
    return str(parsed) if parsed is not None else value


def parse_version_matcher(constraint: Constraint) -> List[VersionMatcher]:
    """Parse a version constraint into comparator/version pairs.

    Accepts a single comparator and version (``>=1.0.0``; ``=`` is assumed
    when the comparator is omitted), a hyphen range (``1.0.0 - 2.0.0``), or a
    comma/space separated list of comparators. An already parsed sequence of
    matchers is returned unchanged. Empty, ``*`` and ``latest`` mean no
    constraint.
    """
    if constraint is None:
        return []
    if not isinstance(constraint, str):
        return list(constraint)

    text = constraint.strip()
    if text.lower() in _UNCONSTRAINED:
        return []

    m = _RANGE_RE.match(text)
    if m:
        return [
            VersionMatcher(VersionComparison.GTE, normalize_version(m.group(1))),
            VersionMatcher(VersionComparison.LTE, normalize_version(m.group(2))),
        ]

    matchers: List[VersionMatcher] = []
    for match in _COMPARATOR_RE.finditer(text):
        matchers.append(VersionMatcher(
            VersionComparison.from_string(match.group(1)),
            normalize_version(match.group(2)),
        ))

    leftover = _COMPARATOR_RE.sub("", text).replace(",", "").strip()
    if not matchers or leftover:
        raise InvalidVersionConstraint(constraint)

    return matchers
