"""defect_bench.domain

Domain objects that form the *contract* between components.

Key idea
--------
Analyzers produce output in tool-specific formats, and ground truth is
authored by humans in annotation files. Both are converted into the types
below so that matching and scoring never need to know vendor quirks.
"""

from __future__ import annotations

from .categories import (
    CANONICAL_CATEGORIES,
    Category,
    Severity,
    category_rank,
    parse_category,
    parse_severity,
)
from .finding import (
    UNKNOWN_RESOLUTION,
    CanonicalFinding,
    CategoryResolution,
    RawFinding,
    order_resolutions,
)
from .ground_truth import CorpusSample, GroundTruthFinding, SourceLocation, StandardRuleRef
from .results import (
    FALSE_NEGATIVE,
    FALSE_POSITIVE,
    MATCHED,
    UNCLASSIFIED,
    Diagnostics,
    MatchResult,
    RunReport,
)

__all__ = [
    "CANONICAL_CATEGORIES",
    "Category",
    "Severity",
    "category_rank",
    "parse_category",
    "parse_severity",
    "UNKNOWN_RESOLUTION",
    "CanonicalFinding",
    "CategoryResolution",
    "RawFinding",
    "order_resolutions",
    "CorpusSample",
    "GroundTruthFinding",
    "SourceLocation",
    "StandardRuleRef",
    "FALSE_NEGATIVE",
    "FALSE_POSITIVE",
    "MATCHED",
    "UNCLASSIFIED",
    "Diagnostics",
    "MatchResult",
    "RunReport",
]
