"""Data models for version constraints."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class VersionComparison(Enum):
    """Comparators accepted in a version constraint."""
    MAJOR = "^"
    MINOR = "~"
    GT = ">"
    GTE = ">="
    LT = "<"
    LTE = "<="
    EQ = "="

    @classmethod
    def from_string(cls, value: Optional[str]) -> "VersionComparison":
        """Return the comparator for ``value``, defaulting to EQ when absent or unknown."""
        token = (value or "").strip()
        for comparison in cls:
            if comparison.value == token:
                return comparison
        return cls.EQ

    @property
    def is_lower_bound(self) -> bool:
        """Caret and tilde are filtered as lower bounds."""
        return self in (VersionComparison.GT, VersionComparison.GTE,
                        VersionComparison.MAJOR, VersionComparison.MINOR)

    @property
    def is_upper_bound(self) -> bool:
        return self in (VersionComparison.LT, VersionComparison.LTE)


@dataclass(frozen=True)
class VersionMatcher:
    """A single comparator/version pair, e.g. ``>=1.2.0``."""
    comparator: VersionComparison
    version: str

    def __str__(self) -> str:
        return f"{self.comparator.value}{self.version}"
