"""defect_bench.domain.finding

Analyzer findings before and after normalization.

Why two types?
--------------
Parsers only know the tool's own vocabulary: its rule ids, its path
conventions, its severity words. That is a :class:`RawFinding`.

Matching needs a tool-agnostic view: corpus-relative path, 1-indexed line,
canonical categories with confidence, 5-point severity. That is a
:class:`CanonicalFinding`, which always keeps the raw record it came from so
reports can show what the tool actually said.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

from .categories import Category, Severity, category_rank, parse_category, parse_severity


def _safe_int(v: Any) -> Optional[int]:
    if v is None:
        return None
    # bool is a subclass of int; treat as invalid.
    if isinstance(v, bool):
        return None
    try:
        return int(v)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class RawFinding:
    tool: str
    tool_version: str
    rule_id: str
    file: str
    # Some tools report only file/function granularity.
    line: Optional[int] = None
    column: Optional[int] = None
    message: str = ""
    native_severity: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tool": self.tool,
            "tool_version": self.tool_version,
            "rule_id": self.rule_id,
            "file": self.file,
            "line": self.line,
            "column": self.column,
            "message": self.message,
            "native_severity": self.native_severity,
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "RawFinding":
        sev = d.get("native_severity")
        return cls(
            tool=str(d.get("tool") or ""),
            tool_version=str(d.get("tool_version") or ""),
            rule_id=str(d.get("rule_id") or ""),
            file=str(d.get("file") or ""),
            line=_safe_int(d.get("line")),
            column=_safe_int(d.get("column")),
            message=str(d.get("message") or ""),
            native_severity=str(sev) if sev is not None else None,
        )


@dataclass(frozen=True, order=True)
class CategoryResolution:
    category: Category
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {"category": self.category.value, "confidence": self.confidence}

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "CategoryResolution":
        return cls(
            category=parse_category(d.get("category"), allow_unknown=True) or Category.UNKNOWN,
            confidence=float(d.get("confidence") or 0.0),
        )


UNKNOWN_RESOLUTION = CategoryResolution(Category.UNKNOWN, 0.0)


def order_resolutions(resolutions) -> Tuple[CategoryResolution, ...]:
    """Highest confidence first; category order breaks ties."""
    return tuple(sorted(resolutions, key=lambda r: (-r.confidence, category_rank(r.category))))


@dataclass(frozen=True)
class CanonicalFinding:
    raw: RawFinding
    # Position in the tool's output; the last deterministic tie-breaker.
    index: int
    file: str
    line: Optional[int]
    severity: Severity
    categories: Tuple[CategoryResolution, ...]
    coarse_location: bool = False

    @property
    def finding_id(self) -> str:
        return f"{self.raw.tool}#{self.index}"

    @property
    def primary_category(self) -> Category:
        return self.categories[0].category if self.categories else Category.UNKNOWN

    @property
    def is_unclassified(self) -> bool:
        return all(r.category is Category.UNKNOWN for r in self.categories)

    def confidence_for(self, category: Category) -> float:
        best = 0.0
        for r in self.categories:
            if r.category is category and r.confidence > best:
                best = r.confidence
        return best

    def to_dict(self) -> Dict[str, Any]:
        return {
            "finding_id": self.finding_id,
            "index": self.index,
            "file": self.file,
            "line": self.line,
            "severity": self.severity.label,
            "categories": [r.to_dict() for r in self.categories],
            "coarse_location": self.coarse_location,
            "raw": self.raw.to_dict(),
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "CanonicalFinding":
        cats = [CategoryResolution.from_dict(c) for c in (d.get("categories") or []) if isinstance(c, Mapping)]
        return cls(
            raw=RawFinding.from_dict(d.get("raw") or {}),
            index=int(d.get("index") or 0),
            file=str(d.get("file") or ""),
            line=_safe_int(d.get("line")),
            severity=parse_severity(d.get("severity")) or Severity.MEDIUM,
            categories=order_resolutions(cats) or (UNKNOWN_RESOLUTION,),
            coarse_location=bool(d.get("coarse_location")),
        )
