"""defect_bench.regression.tracker

Append-only run store and baseline comparison.

Store layout
------------
::

    <store_root>/runs/<run_id>/report.json   full RunReport (run_id stamped in)
    <store_root>/runs/<run_id>/key.json      (corpus_version, tool, tool_version, crosswalk_version)

A run directory is created with an exclusive ``mkdir``; that is the only
synchronisation needed. Reports are never rewritten once stored.

Comparison
----------
Both run ids are always explicit. There is no implicit "latest" baseline: a
comparison against whatever happened to run last is exactly the kind of
silent drift this tracker exists to catch. A missing id raises
:class:`~defect_bench.errors.RegressionBaselineNotFound`.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from defect_bench.domain.categories import category_rank, parse_category
from defect_bench.domain.results import RunReport
from defect_bench.errors import CorruptRunError, RegressionBaselineNotFound
from defect_bench.io.fs import read_json, write_json_atomic
from defect_bench.io.run_dir import RUN_ID_RE, create_run_dir
from defect_bench.scoring.numeric import round_metric

logger = logging.getLogger(__name__)

COMPARISON_SCHEMA_VERSION = "run_comparison_v1"

_KEY_FIELDS: Tuple[str, ...] = ("corpus_version", "tool", "tool_version", "crosswalk_version")


def _to_float(x: Any) -> Optional[float]:
    if x is None or isinstance(x, bool):
        return None
    try:
        return float(x)
    except (TypeError, ValueError):
        return None


def _delta(a: Any, b: Any) -> Optional[float]:
    aa = _to_float(a)
    bb = _to_float(b)
    if aa is None or bb is None:
        return None
    return round_metric(bb - aa)


@dataclass(frozen=True)
class CategoryDelta:
    category: str
    baseline: Mapping[str, Any]
    candidate: Mapping[str, Any]
    deltas: Mapping[str, Optional[float]]
    regressed: bool
    reasons: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "baseline": dict(self.baseline),
            "candidate": dict(self.candidate),
            "deltas": dict(self.deltas),
            "regressed": self.regressed,
            "reasons": list(self.reasons),
        }


@dataclass(frozen=True)
class RunComparison:
    baseline_run_id: str
    candidate_run_id: str
    threshold: float
    overall: CategoryDelta
    categories: Tuple[CategoryDelta, ...]
    notes: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def has_regression(self) -> bool:
        return any(c.regressed for c in self.categories)

    @property
    def regressed_categories(self) -> List[str]:
        return [c.category for c in self.categories if c.regressed]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema_version": COMPARISON_SCHEMA_VERSION,
            "baseline_run_id": self.baseline_run_id,
            "candidate_run_id": self.candidate_run_id,
            "threshold": self.threshold,
            "has_regression": self.has_regression,
            "regressed_categories": self.regressed_categories,
            "overall": self.overall.to_dict(),
            "categories": [c.to_dict() for c in self.categories],
            "notes": list(self.notes),
        }


_COMPARED_FIELDS: Tuple[str, ...] = ("tp", "fp", "fn", "precision", "recall", "f1")


def _pick(block: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    block = block or {}
    return {k: block.get(k) for k in _COMPARED_FIELDS}


def _compare_block(
    name: str,
    base: Optional[Mapping[str, Any]],
    cand: Optional[Mapping[str, Any]],
    *,
    threshold: float,
) -> CategoryDelta:
    b = _pick(base)
    c = _pick(cand)
    deltas = {k: _delta(b.get(k) or 0, c.get(k) or 0) for k in ("tp", "fp", "fn")}
    for k in ("precision", "recall", "f1"):
        deltas[k] = _delta(b.get(k), c.get(k))

    reasons: List[str] = []
    recall_delta = deltas.get("recall")
    if recall_delta is not None and -recall_delta > threshold:
        reasons.append(f"recall dropped by {abs(recall_delta):.4f} (threshold {threshold:.4f})")
    base_tp = int(b.get("tp") or 0)
    cand_tp = int(c.get("tp") or 0)
    if base_tp > 0 and cand_tp == 0:
        reasons.append(f"true positives fell from {base_tp} to 0")

    return CategoryDelta(
        category=name,
        baseline=b,
        candidate=c,
        deltas=deltas,
        regressed=bool(reasons),
        reasons=tuple(reasons),
    )


def _category_sort_key(name: str) -> Tuple[int, str]:
    cat = parse_category(name, allow_unknown=True)
    return (category_rank(cat) if cat is not None else 10**6, name)


def compare_reports(
    baseline: RunReport,
    candidate: RunReport,
    *,
    threshold: float = 0.0,
) -> RunComparison:
    """Per-category score deltas between two reports (candidate - baseline)."""
    if threshold < 0:
        raise ValueError(f"regression threshold must be >= 0, got {threshold!r}")

    base_cats = (baseline.metrics or {}).get("by_category") or {}
    cand_cats = (candidate.metrics or {}).get("by_category") or {}
    names = sorted(set(base_cats) | set(cand_cats), key=_category_sort_key)

    categories = tuple(
        _compare_block(n, base_cats.get(n), cand_cats.get(n), threshold=threshold) for n in names
    )
    overall = _compare_block(
        "overall",
        (baseline.metrics or {}).get("overall"),
        (candidate.metrics or {}).get("overall"),
        threshold=threshold,
    )

    notes: List[str] = []
    for f in _KEY_FIELDS:
        a = getattr(baseline, f)
        b = getattr(candidate, f)
        if a != b:
            notes.append(f"{f} differs: baseline={a!r} candidate={b!r}")
    if baseline.matching != candidate.matching:
        notes.append(
            f"matching settings differ: baseline={json.dumps(baseline.matching, sort_keys=True)} "
            f"candidate={json.dumps(candidate.matching, sort_keys=True)}"
        )
    for label, rep in (("baseline", baseline), ("candidate", candidate)):
        if rep.incomplete:
            notes.append(f"{label} run is incomplete (tool timed out or crashed)")

    return RunComparison(
        baseline_run_id=baseline.run_id or "",
        candidate_run_id=candidate.run_id or "",
        threshold=float(threshold),
        overall=overall,
        categories=categories,
        notes=tuple(notes),
    )


class RegressionTracker:
    def __init__(self, store_root: Path) -> None:
        self.store_root = Path(store_root)
        self.runs_dir = self.store_root / "runs"

    def store(self, report: RunReport) -> str:
        run_id, run_dir = create_run_dir(self.runs_dir)
        stamped = report.with_run_id(run_id)
        key = {f: getattr(stamped, f) for f in _KEY_FIELDS}
        # key.json is written last: a run is listed only once its report exists.
        write_json_atomic(run_dir / "report.json", stamped.to_dict())
        write_json_atomic(run_dir / "key.json", key)
        logger.info("Stored run %s for %s", run_id, "/".join(str(v) for v in key.values()))
        return run_id

    def _report_path(self, run_id: str) -> Path:
        rid = str(run_id or "").strip()
        if not RUN_ID_RE.match(rid):
            raise RegressionBaselineNotFound(rid)
        p = self.runs_dir / rid / "report.json"
        if not p.is_file():
            raise RegressionBaselineNotFound(rid)
        return p

    def load(self, run_id: str) -> RunReport:
        p = self._report_path(run_id)
        try:
            report = RunReport.from_dict(read_json(p))
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise CorruptRunError(f"stored run {run_id} is malformed: {e}") from e
        if report.run_id is None:
            report = report.with_run_id(str(run_id))
        return report

    def list_runs(self, **key_filters: Any) -> List[str]:
        unknown = set(key_filters) - set(_KEY_FIELDS)
        if unknown:
            raise ValueError(f"unknown run key fields: {sorted(unknown)}")
        if not self.runs_dir.is_dir():
            return []
        out: List[str] = []
        for d in sorted(self.runs_dir.iterdir()):
            if not d.is_dir() or not RUN_ID_RE.match(d.name):
                continue
            key_path = d / "key.json"
            if not key_path.is_file() or not (d / "report.json").is_file():
                continue
            key = read_json(key_path)
            if all(str(key.get(k)) == str(v) for k, v in key_filters.items() if v is not None):
                out.append(d.name)
        return out

    def compare_to_baseline(
        self,
        candidate_run_id: str,
        baseline_run_id: str,
        *,
        threshold: float = 0.0,
    ) -> RunComparison:
        # Both reports are read fully before comparing; a run stored meanwhile
        # cannot change either side.
        baseline = self.load(baseline_run_id)
        candidate = self.load(candidate_run_id)
        comparison = compare_reports(baseline, candidate, threshold=threshold)
        if comparison.has_regression:
            logger.warning(
                "Run %s regressed against %s in: %s",
                candidate_run_id,
                baseline_run_id,
                ", ".join(comparison.regressed_categories),
            )
        return comparison
