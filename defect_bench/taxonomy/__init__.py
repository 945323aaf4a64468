from __future__ import annotations

from .crosswalk import (
    CrosswalkRow,
    RuleTaxonomyMapper,
    TaxonomyCrosswalk,
    build_crosswalk,
    gap_label,
    load_crosswalk,
    rule_key,
)

__all__ = [
    "CrosswalkRow",
    "RuleTaxonomyMapper",
    "TaxonomyCrosswalk",
    "build_crosswalk",
    "gap_label",
    "load_crosswalk",
    "rule_key",
]
