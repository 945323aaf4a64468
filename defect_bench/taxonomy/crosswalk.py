"""defect_bench.taxonomy.crosswalk

Versioned crosswalk from tool/standard rule identifiers to canonical
categories.

Why this file exists
--------------------
Every analyzer speaks its own rule vocabulary (``cppcheck:nullPointer``,
``clang-tidy:bugprone-use-after-move``, ``CERT:MEM30-C``...). Matching needs
canonical categories, and the mapping between the two is *data* that evolves:
a taxonomy revision can move a rule between categories and shift every
precision number.

So the mapping is an explicit value rather than shared global state:

* :class:`RuleTaxonomyMapper` builds it row by row
* :meth:`RuleTaxonomyMapper.freeze` yields an immutable
  :class:`TaxonomyCrosswalk` that carries a version
* every run report records the version it was scored with

Rows are many-to-many: a tool rule spanning several categories registers one
row per category, each with its own confidence.

Coverage gaps
-------------
A rule with no row resolves to ``{(unknown, 0.0)}`` and emits a
:class:`~defect_bench.errors.CrosswalkGapWarning`. It is never dropped and
never guessed.
"""

from __future__ import annotations

import logging
import math
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Tuple

from defect_bench.domain.categories import Category, parse_category
from defect_bench.domain.finding import UNKNOWN_RESOLUTION, CategoryResolution
from defect_bench.errors import CrosswalkError, CrosswalkGapWarning
from defect_bench.io.fs import read_structured

logger = logging.getLogger(__name__)

RuleKey = Tuple[str, str]


def rule_key(standard: str, rule_id: str) -> RuleKey:
    return (str(standard or "").strip().lower(), str(rule_id or "").strip())


def gap_label(standard: str, rule_id: str) -> str:
    std, rid = rule_key(standard, rule_id)
    return f"{std}:{rid}"


@dataclass(frozen=True)
class CrosswalkRow:
    standard: str
    rule_id: str
    category: Category
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "standard": self.standard,
            "ruleId": self.rule_id,
            "category": self.category.value,
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class TaxonomyCrosswalk:
    """Immutable, versioned rule -> category table."""

    version: str
    rows: Tuple[CrosswalkRow, ...] = ()
    _index: Mapping[RuleKey, FrozenSet[CategoryResolution]] = field(
        default_factory=dict, repr=False, compare=False
    )

    def resolve(self, standard: str, rule_id: str) -> FrozenSet[CategoryResolution]:
        key = rule_key(standard, rule_id)
        hit = self._index.get(key)
        if hit:
            return hit
        label = gap_label(standard, rule_id)
        logger.warning("Crosswalk %s has no entry for %s; category resolves to unknown", self.version, label)
        warnings.warn(
            f"crosswalk {self.version} has no entry for {label}",
            CrosswalkGapWarning,
            stacklevel=2,
        )
        return frozenset({UNKNOWN_RESOLUTION})

    def covers(self, standard: str, rule_id: str) -> bool:
        return rule_key(standard, rule_id) in self._index

    def standards(self) -> Tuple[str, ...]:
        return tuple(sorted({k[0] for k in self._index}))

    def to_dict(self) -> Dict[str, Any]:
        return {"version": self.version, "rows": [r.to_dict() for r in self.rows]}


class RuleTaxonomyMapper:
    """Builder for a :class:`TaxonomyCrosswalk`."""

    def __init__(self, version: str) -> None:
        if not str(version or "").strip():
            raise CrosswalkError("crosswalk version must be a non-empty string")
        self.version = str(version).strip()
        self._rows: Dict[Tuple[str, str, Category], CrosswalkRow] = {}
        self._frozen: "TaxonomyCrosswalk | None" = None

    def register(self, standard: str, rule_id: str, category: Any, confidence: float) -> None:
        if self._frozen is not None:
            raise CrosswalkError(f"crosswalk {self.version} is frozen; cannot register new rows")

        std, rid = rule_key(standard, rule_id)
        if not std or not rid:
            raise CrosswalkError("crosswalk rows need both a standard and a ruleId")

        cat = parse_category(category)
        if cat is None:
            raise CrosswalkError(f"{std}:{rid}: category {category!r} is not a canonical category")

        try:
            conf = float(confidence)
        except (TypeError, ValueError):
            raise CrosswalkError(f"{std}:{rid}: confidence {confidence!r} is not a number") from None
        if isinstance(confidence, bool) or math.isnan(conf) or not 0.0 <= conf <= 1.0:
            raise CrosswalkError(f"{std}:{rid}: confidence {confidence!r} must be within [0, 1]")

        key = (std, rid, cat)
        existing = self._rows.get(key)
        if existing is not None and existing.confidence >= conf:
            return
        self._rows[key] = CrosswalkRow(standard=std, rule_id=rid, category=cat, confidence=conf)

    def _snapshot(self) -> TaxonomyCrosswalk:
        rows = tuple(sorted(self._rows.values(), key=lambda r: (r.standard, r.rule_id, r.category.value)))
        index: Dict[RuleKey, set] = {}
        for r in rows:
            # Zero-confidence rows document a considered non-mapping; they
            # still count as coverage.
            index.setdefault((r.standard, r.rule_id), set()).add(CategoryResolution(r.category, r.confidence))
        return TaxonomyCrosswalk(
            version=self.version,
            rows=rows,
            _index={k: frozenset(v) for k, v in index.items()},
        )

    def freeze(self) -> TaxonomyCrosswalk:
        if self._frozen is None:
            self._frozen = self._snapshot()
        return self._frozen

    def resolve(self, standard: str, rule_id: str) -> FrozenSet[CategoryResolution]:
        """Resolve against the rows registered so far. Does not freeze."""
        table = self._frozen if self._frozen is not None else self._snapshot()
        return table.resolve(standard, rule_id)


def _row_field(row: Mapping[str, Any], *keys: str) -> Any:
    for k in keys:
        if k in row:
            return row[k]
    return None


def build_crosswalk(version: str, rows: Iterable[Mapping[str, Any]]) -> TaxonomyCrosswalk:
    mapper = RuleTaxonomyMapper(version)
    problems: List[str] = []
    for i, row in enumerate(rows):
        if not isinstance(row, Mapping):
            problems.append(f"row {i}: must be a mapping")
            continue
        try:
            mapper.register(
                _row_field(row, "standard", "tool"),
                _row_field(row, "ruleId", "rule_id", "rule"),
                _row_field(row, "category"),
                _row_field(row, "confidence") if _row_field(row, "confidence") is not None else 1.0,
            )
        except CrosswalkError as e:
            problems.append(f"row {i}: {e}")
    if problems:
        raise CrosswalkError("invalid crosswalk rows:\n  " + "\n  ".join(problems))
    return mapper.freeze()


def load_crosswalk(path: Path) -> TaxonomyCrosswalk:
    """Load ``{version, rows: [{standard, ruleId, category, confidence}]}``."""
    p = Path(path)
    if not p.is_file():
        raise CrosswalkError(f"crosswalk file not found: {p}")
    try:
        doc = read_structured(p)
    except ValueError as e:
        raise CrosswalkError(str(e)) from e
    if not isinstance(doc, Mapping):
        raise CrosswalkError(f"{p}: crosswalk must be a mapping with 'version' and 'rows'")
    version = doc.get("version")
    if version in (None, ""):
        raise CrosswalkError(f"{p}: crosswalk is missing a version")
    rows = doc.get("rows")
    if not isinstance(rows, list):
        raise CrosswalkError(f"{p}: 'rows' must be a list")
    xw = build_crosswalk(str(version), rows)
    logger.info("Loaded crosswalk %s (%d rows) from %s", xw.version, len(xw.rows), p)
    return xw
