from __future__ import annotations

from .tracker import CategoryDelta, RegressionTracker, RunComparison, compare_reports

__all__ = [
    "CategoryDelta",
    "RegressionTracker",
    "RunComparison",
    "compare_reports",
]
