"""defect_bench.domain.categories

The closed canonical defect taxonomy and the 5-point severity scale.

Every ground-truth finding and every crosswalk row maps into
:data:`CANONICAL_CATEGORIES`. ``Category.UNKNOWN`` is a sentinel used only for
tool rules the crosswalk does not cover; it is never valid in ground truth.
"""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Any, Dict, Optional, Tuple


class Category(str, Enum):
    BUFFER_OVERFLOW = "buffer-overflow"
    USE_AFTER_FREE = "use-after-free"
    UNINITIALIZED_READ = "uninitialized-read"
    INTEGER_OVERFLOW = "integer-overflow"
    FORMAT_STRING = "format-string"
    TOCTOU = "toctou"
    WEAK_RANDOMNESS = "weak-randomness"
    SIGNED_UNSIGNED_MISMATCH = "signed-unsigned-mismatch"
    MISSING_BOUNDS_CHECK = "missing-bounds-check"
    RESOURCE_LEAK = "resource-leak"
    DANGLING_REFERENCE = "dangling-reference"
    DOUBLE_FREE = "double-free"
    ALIASING_SLICING = "aliasing/slicing"
    OTHER = "other"

    UNKNOWN = "unknown"

    def __str__(self) -> str:
        return self.value


# Closed set, in declaration order. Order doubles as the deterministic
# tie-break between categories of equal confidence.
CANONICAL_CATEGORIES: Tuple[Category, ...] = tuple(c for c in Category if c is not Category.UNKNOWN)

_CATEGORY_ORDER: Dict[Category, int] = {c: i for i, c in enumerate(Category)}

_CATEGORY_ALIASES: Dict[str, Category] = {
    "aliasing-slicing": Category.ALIASING_SLICING,
    "aliasing": Category.ALIASING_SLICING,
    "slicing": Category.ALIASING_SLICING,
    "uaf": Category.USE_AFTER_FREE,
    "toc-tou": Category.TOCTOU,
}


def category_rank(cat: Category) -> int:
    return _CATEGORY_ORDER[cat]


def parse_category(value: Any, *, allow_unknown: bool = False) -> Optional[Category]:
    """Parse a category label; return None if it is not in the accepted set.

    Matching is case-insensitive and treats ``_`` and spaces like ``-``.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Category):
        cat = value
    else:
        s = str(value).strip().lower().replace("_", "-").replace(" ", "-")
        if not s:
            return None
        try:
            cat = Category(s)
        except ValueError:
            cat = _CATEGORY_ALIASES.get(s)  # type: ignore[assignment]
            if cat is None:
                return None
    if cat is Category.UNKNOWN and not allow_unknown:
        return None
    return cat


class Severity(IntEnum):
    """5-point ordinal severity scale."""

    INFO = 1
    LOW = 2
    MEDIUM = 3
    HIGH = 4
    CRITICAL = 5

    @property
    def label(self) -> str:
        return self.name.lower()


_SEVERITY_ALIASES: Dict[str, Severity] = {
    "informational": Severity.INFO,
    "information": Severity.INFO,
    "note": Severity.INFO,
    "minor": Severity.LOW,
    "moderate": Severity.MEDIUM,
    "major": Severity.HIGH,
    "blocker": Severity.CRITICAL,
}


def parse_severity(value: Any) -> Optional[Severity]:
    """Parse a severity label (or its 1..5 rank). Returns None if invalid."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Severity):
        return value
    if isinstance(value, int):
        try:
            return Severity(value)
        except ValueError:
            return None
    s = str(value).strip().lower()
    if not s:
        return None
    if s.isdigit():
        return parse_severity(int(s))
    for sev in Severity:
        if sev.label == s:
            return sev
    return _SEVERITY_ALIASES.get(s)
