"""defect_bench.scoring

Matching and metric computation. Pure, in-memory, no IO: safe to run for
several (corpus, tool) pairs in parallel against shared, read-only inputs.
"""

from __future__ import annotations

from .aggregate import aggregate
from .assignment import max_weight_assignment
from .matcher import DEFAULT_COARSE_DISCOUNT, DEFAULT_LOCATION_TOLERANCE, Matcher
from .numeric import ratio, round_metric

__all__ = [
    "DEFAULT_COARSE_DISCOUNT",
    "DEFAULT_LOCATION_TOLERANCE",
    "Matcher",
    "aggregate",
    "max_weight_assignment",
    "ratio",
    "round_metric",
]
