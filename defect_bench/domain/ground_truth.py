"""defect_bench.domain.ground_truth

Ground-truth records: the known, documented defects of each corpus sample.

These objects are produced only by :mod:`defect_bench.gt.store`, which performs
all validation. ``from_dict`` here is the lenient inverse of ``to_dict`` used
when a persisted run report is reloaded.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from .categories import Category, Severity, parse_category, parse_severity


@dataclass(frozen=True)
class SourceLocation:
    """Corpus-relative file plus a 1-indexed inclusive line range."""

    file: str
    line_start: int
    line_end: int
    column: Optional[int] = None

    @property
    def midpoint(self) -> float:
        return (self.line_start + self.line_end) / 2.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file": self.file,
            "line_start": self.line_start,
            "line_end": self.line_end,
            "column": self.column,
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "SourceLocation":
        col = d.get("column")
        return cls(
            file=str(d.get("file") or ""),
            line_start=int(d.get("line_start") or 0),
            line_end=int(d.get("line_end") or d.get("line_start") or 0),
            column=int(col) if col is not None else None,
        )


@dataclass(frozen=True, order=True)
class StandardRuleRef:
    """A rule from a coding standard, e.g. (CERT, MEM30-C) or (CWE, 416)."""

    standard: str
    rule_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {"standard": self.standard, "rule_id": self.rule_id}

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "StandardRuleRef":
        return cls(
            standard=str(d.get("standard") or ""),
            rule_id=str(d.get("rule_id") or d.get("ruleId") or ""),
        )


@dataclass(frozen=True)
class GroundTruthFinding:
    id: str
    sample_id: str
    category: Category
    location: SourceLocation
    severity: Severity
    standard_rules: Tuple[StandardRuleRef, ...] = ()
    note: str = ""
    # True when the defect only manifests on some control-flow paths.
    conditional: bool = False
    intentional_duplicate: bool = False

    @property
    def file(self) -> str:
        return self.location.file

    def sort_key(self) -> Tuple[str, int, str]:
        return (self.location.file, self.location.line_start, self.id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "sample_id": self.sample_id,
            "category": self.category.value,
            "location": self.location.to_dict(),
            "severity": self.severity.label,
            "standard_rules": [r.to_dict() for r in self.standard_rules],
            "note": self.note,
            "conditional": self.conditional,
            "intentional_duplicate": self.intentional_duplicate,
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "GroundTruthFinding":
        return cls(
            id=str(d.get("id") or ""),
            sample_id=str(d.get("sample_id") or ""),
            category=parse_category(d.get("category")) or Category.OTHER,
            location=SourceLocation.from_dict(d.get("location") or {}),
            severity=parse_severity(d.get("severity")) or Severity.MEDIUM,
            standard_rules=tuple(
                StandardRuleRef.from_dict(r) for r in (d.get("standard_rules") or []) if isinstance(r, Mapping)
            ),
            note=str(d.get("note") or ""),
            conditional=bool(d.get("conditional")),
            intentional_duplicate=bool(d.get("intentional_duplicate")),
        )


@dataclass(frozen=True)
class CorpusSample:
    """One annotated sample. Immutable once loaded."""

    sample_id: str
    language: str
    findings: Tuple[GroundTruthFinding, ...] = field(default_factory=tuple)
    annotation_path: Optional[str] = None

    def files(self) -> Tuple[str, ...]:
        return tuple(sorted({f.file for f in self.findings}))
