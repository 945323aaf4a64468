"""defect_bench.scoring.aggregate

Precision / recall / F1 per category and overall.

Attribution
-----------
* TP and FN belong to the ground-truth category.
* An FP belongs to the finding's primary category (highest confidence,
  category order breaking ties).
* Unclassified extras (only category ``unknown``) are counted separately and
  never enter precision.

Categories with no ground truth report ``recall: null``; they still report
precision. 0/0 is 0 everywhere else. Ratios are exact fractions rounded once,
half-to-even, to 4 decimals, so repeated runs over the same input produce
bit-identical numbers.
"""

from __future__ import annotations

from collections import Counter
from fractions import Fraction
from typing import Any, Dict, List, Optional, Sequence

from defect_bench.domain.categories import Category, category_rank
from defect_bench.domain.results import FALSE_NEGATIVE, FALSE_POSITIVE, MATCHED, UNCLASSIFIED, MatchResult

from .numeric import ratio, round_metric


def _f1(p: Fraction, r: Fraction) -> Fraction:
    if p + r == 0:
        return Fraction(0)
    return 2 * p * r / (p + r)


def _block(tp: int, fp: int, fn: int, *, has_ground_truth: bool) -> Dict[str, Any]:
    p = ratio(tp, tp + fp)
    r = ratio(tp, tp + fn)
    recall: Optional[float] = round_metric(r) if has_ground_truth else None
    return {
        "tp": tp,
        "fp": fp,
        "fn": fn,
        "ground_truth": tp + fn,
        "precision": round_metric(p),
        "recall": recall,
        "f1": round_metric(_f1(p, r)) if has_ground_truth else round_metric(0),
    }


def _require(result: MatchResult, value: Any, name: str) -> None:
    if value is None:
        raise ValueError(f"{result.kind} result is missing its {name}")


def aggregate(results: Sequence[MatchResult]) -> Dict[str, Any]:
    tp: Counter = Counter()
    fp: Counter = Counter()
    fn: Counter = Counter()
    unclassified = 0
    conditional_total = 0
    conditional_missed = 0

    for r in results:
        if r.kind == MATCHED:
            _require(r, r.ground_truth, "ground_truth")
            tp[r.ground_truth.category] += 1
            if r.ground_truth.conditional:
                conditional_total += 1
        elif r.kind == FALSE_NEGATIVE:
            _require(r, r.ground_truth, "ground_truth")
            fn[r.ground_truth.category] += 1
            if r.ground_truth.conditional:
                conditional_total += 1
                conditional_missed += 1
        elif r.kind == FALSE_POSITIVE:
            _require(r, r.finding, "finding")
            fp[r.finding.primary_category] += 1
        elif r.kind == UNCLASSIFIED:
            unclassified += 1
        else:
            raise ValueError(f"unknown match result kind {r.kind!r}")

    cats: List[Category] = sorted(set(tp) | set(fp) | set(fn), key=category_rank)
    by_category: Dict[str, Dict[str, Any]] = {}
    for c in cats:
        by_category[c.value] = _block(tp[c], fp[c], fn[c], has_ground_truth=(tp[c] + fn[c]) > 0)

    total_tp = sum(tp.values())
    total_fp = sum(fp.values())
    total_fn = sum(fn.values())
    overall = _block(total_tp, total_fp, total_fn, has_ground_truth=True)
    overall["unclassified"] = unclassified
    overall["findings"] = total_tp + total_fp + unclassified

    precisions = [ratio(tp[c], tp[c] + fp[c]) for c in cats if tp[c] + fp[c] > 0]
    recalls = [ratio(tp[c], tp[c] + fn[c]) for c in cats if tp[c] + fn[c] > 0]
    macro_p = sum(precisions, Fraction(0)) / len(precisions) if precisions else Fraction(0)
    macro_r = sum(recalls, Fraction(0)) / len(recalls) if recalls else Fraction(0)

    return {
        "overall": overall,
        "macro": {
            "precision": round_metric(macro_p),
            "recall": round_metric(macro_r),
            "f1": round_metric(_f1(macro_p, macro_r)),
        },
        "by_category": by_category,
        "conditional": {
            "total": conditional_total,
            "missed": conditional_missed,
        },
    }
