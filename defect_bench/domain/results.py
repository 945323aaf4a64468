"""defect_bench.domain.results

Match results, diagnostics and the run report.

A :class:`RunReport` is the unit the regression tracker persists. Its JSON
form is the public contract: field names are stable and serialization sorts
keys, so two reports built from identical inputs (with a pinned timestamp) are
byte-identical.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .finding import CanonicalFinding
from .ground_truth import GroundTruthFinding

REPORT_SCHEMA_VERSION = "run_report_v1"

MATCHED = "matched"
FALSE_POSITIVE = "false_positive"
UNCLASSIFIED = "unclassified"
FALSE_NEGATIVE = "false_negative"

MATCH_KINDS: Tuple[str, ...] = (MATCHED, FALSE_NEGATIVE, FALSE_POSITIVE, UNCLASSIFIED)
_KIND_RANK = {k: i for i, k in enumerate(MATCH_KINDS)}
_NEEDS_GROUND_TRUTH = frozenset({MATCHED, FALSE_NEGATIVE})
_NEEDS_FINDING = frozenset({MATCHED, FALSE_POSITIVE, UNCLASSIFIED})

# Parse failure messages kept verbatim in a report; the counter is exact.
MAX_RECORDED_PARSE_ERRORS = 50


@dataclass(frozen=True)
class MatchResult:
    kind: str
    finding: Optional[CanonicalFinding] = None
    ground_truth: Optional[GroundTruthFinding] = None
    score: Optional[float] = None

    def sort_key(self) -> Tuple[str, int, int, str, int]:
        if self.ground_truth is not None:
            file = self.ground_truth.file
            line = self.ground_truth.location.line_start
        elif self.finding is not None:
            file = self.finding.file
            line = self.finding.line or 0
        else:
            raise ValueError(f"{self.kind} result has neither a finding nor a ground truth")
        gt_id = self.ground_truth.id if self.ground_truth is not None else ""
        idx = self.finding.index if self.finding is not None else -1
        return (file, line, _KIND_RANK[self.kind], gt_id, idx)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "finding": self.finding.to_dict() if self.finding is not None else None,
            "ground_truth": self.ground_truth.to_dict() if self.ground_truth is not None else None,
            "score": self.score,
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "MatchResult":
        f = d.get("finding")
        g = d.get("ground_truth")
        score = d.get("score")
        kind = str(d.get("kind") or "")
        if kind not in _KIND_RANK:
            raise ValueError(f"unknown match kind: {kind!r}")
        if kind in _NEEDS_GROUND_TRUTH and not isinstance(g, Mapping):
            raise ValueError(f"{kind} result is missing its ground_truth")
        if kind in _NEEDS_FINDING and not isinstance(f, Mapping):
            raise ValueError(f"{kind} result is missing its finding")
        return cls(
            kind=kind,
            finding=CanonicalFinding.from_dict(f) if isinstance(f, Mapping) else None,
            ground_truth=GroundTruthFinding.from_dict(g) if isinstance(g, Mapping) else None,
            score=float(score) if score is not None else None,
        )


@dataclass
class Diagnostics:
    """Counters for anything that could silently distort a metric."""

    parse_failures: int = 0
    coverage_gaps: int = 0
    coarse_locations: int = 0
    timeouts: int = 0
    crashes: int = 0
    unclassified_extras: int = 0
    unknown_files: int = 0
    gap_rules: List[str] = field(default_factory=list)
    unknown_file_paths: List[str] = field(default_factory=list)
    parse_errors: List[str] = field(default_factory=list)

    def record_parse_failure(self, message: str) -> None:
        self.parse_failures += 1
        if len(self.parse_errors) < MAX_RECORDED_PARSE_ERRORS:
            self.parse_errors.append(message)

    def record_gap(self, key: str) -> None:
        self.coverage_gaps += 1
        if key not in self.gap_rules:
            self.gap_rules.append(key)
            self.gap_rules.sort()

    def record_unknown_file(self, path: str) -> None:
        self.unknown_files += 1
        if path not in self.unknown_file_paths and len(self.unknown_file_paths) < MAX_RECORDED_PARSE_ERRORS:
            self.unknown_file_paths.append(path)
            self.unknown_file_paths.sort()

    def merge(self, other: "Diagnostics") -> None:
        self.parse_failures += other.parse_failures
        self.coverage_gaps += other.coverage_gaps
        self.coarse_locations += other.coarse_locations
        self.timeouts += other.timeouts
        self.crashes += other.crashes
        self.unclassified_extras += other.unclassified_extras
        self.unknown_files += other.unknown_files
        self.unknown_file_paths = sorted(set(self.unknown_file_paths) | set(other.unknown_file_paths))
        self.gap_rules = sorted(set(self.gap_rules) | set(other.gap_rules))
        room = MAX_RECORDED_PARSE_ERRORS - len(self.parse_errors)
        if room > 0:
            self.parse_errors.extend(other.parse_errors[:room])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "parse_failures": self.parse_failures,
            "coverage_gaps": self.coverage_gaps,
            "coarse_locations": self.coarse_locations,
            "timeouts": self.timeouts,
            "crashes": self.crashes,
            "unclassified_extras": self.unclassified_extras,
            "unknown_files": self.unknown_files,
            "unknown_file_paths": list(self.unknown_file_paths),
            "gap_rules": list(self.gap_rules),
            "parse_errors": list(self.parse_errors),
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "Diagnostics":
        return cls(
            parse_failures=int(d.get("parse_failures") or 0),
            coverage_gaps=int(d.get("coverage_gaps") or 0),
            coarse_locations=int(d.get("coarse_locations") or 0),
            timeouts=int(d.get("timeouts") or 0),
            crashes=int(d.get("crashes") or 0),
            unclassified_extras=int(d.get("unclassified_extras") or 0),
            unknown_files=int(d.get("unknown_files") or 0),
            unknown_file_paths=[str(x) for x in (d.get("unknown_file_paths") or [])],
            gap_rules=[str(x) for x in (d.get("gap_rules") or [])],
            parse_errors=[str(x) for x in (d.get("parse_errors") or [])],
        )


@dataclass(frozen=True)
class RunReport:
    corpus_version: str
    tool: str
    tool_version: str
    crosswalk_version: str
    timestamp: str
    results: Tuple[MatchResult, ...]
    metrics: Dict[str, Any]
    diagnostics: Diagnostics
    matching: Dict[str, Any] = field(default_factory=dict)
    incomplete: bool = False
    run_id: Optional[str] = None
    schema_version: str = REPORT_SCHEMA_VERSION

    @property
    def key(self) -> Tuple[str, str, str, str]:
        return (self.corpus_version, self.tool, self.tool_version, self.crosswalk_version)

    def with_run_id(self, run_id: str) -> "RunReport":
        return replace(self, run_id=run_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema_version": self.schema_version,
            "run_id": self.run_id,
            "corpus_version": self.corpus_version,
            "tool": self.tool,
            "tool_version": self.tool_version,
            "crosswalk_version": self.crosswalk_version,
            "timestamp": self.timestamp,
            "incomplete": self.incomplete,
            "matching": dict(self.matching),
            "metrics": self.metrics,
            "diagnostics": self.diagnostics.to_dict(),
            "results": [r.to_dict() for r in self.results],
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "RunReport":
        if not isinstance(d, Mapping):
            raise ValueError("run report must be a JSON object")
        run_id = d.get("run_id")
        return cls(
            schema_version=str(d.get("schema_version") or REPORT_SCHEMA_VERSION),
            run_id=str(run_id) if run_id else None,
            corpus_version=str(d.get("corpus_version") or ""),
            tool=str(d.get("tool") or ""),
            tool_version=str(d.get("tool_version") or ""),
            crosswalk_version=str(d.get("crosswalk_version") or ""),
            timestamp=str(d.get("timestamp") or ""),
            incomplete=bool(d.get("incomplete")),
            matching=dict(d.get("matching") or {}),
            metrics=dict(d.get("metrics") or {}),
            diagnostics=Diagnostics.from_dict(d.get("diagnostics") or {}),
            results=tuple(MatchResult.from_dict(r) for r in (d.get("results") or []) if isinstance(r, Mapping)),
        )
