"""defect_bench

Core package for the defect-corpus evaluation engine.

Why this exists
---------------
A corpus of intentionally defective samples is only useful if analyzer output
can be judged against it without a human reading every report. This package
owns everything that judgement depends on:

* domain types (ground truth, raw/canonical findings, match results, reports)
* the ground-truth store and the taxonomy crosswalk
* matching and scoring
* persistence and regression comparison of run reports

Tool-specific parsing lives in ``tools/`` and run orchestration in
``pipeline/``. Neither is imported from here; the dependency only points
inward.
"""

from __future__ import annotations

__version__ = "0.3.0"
