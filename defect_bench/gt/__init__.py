"""defect_bench.gt

Ground-truth (GT) loading and validation.

Design rule
-----------
Higher-level layers (CLI, orchestration) may import from `defect_bench.gt`,
but `defect_bench.gt` must not import from those layers.
"""

from __future__ import annotations

from .store import ANNOTATION_SUFFIXES, GroundTruthStore, discover_annotation_files, validate_corpus

__all__ = [
    "ANNOTATION_SUFFIXES",
    "GroundTruthStore",
    "discover_annotation_files",
    "validate_corpus",
]
