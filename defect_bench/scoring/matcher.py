"""defect_bench.scoring.matcher

Pairs canonical findings with ground truth.

Candidate rule
--------------
A (finding C, ground truth G) pair is a candidate iff:

* same corpus-relative file
* C resolves G's category with confidence > 0
* ``|line(C) - midpoint(G)| <= tolerance``, or C has a coarse location

Pair weight is ``confidence * proximity`` where proximity is
``1 - distance / (tolerance + 1)`` for precise pairs and a fixed discount for
coarse ones.

Assignment
----------
Among all candidates the matcher picks the 1:1 assignment with the maximum
total weight (Hungarian algorithm). A greedy nearest-first pass is order
dependent and can strand a higher-value pair, so it is not used anywhere.

Ties are resolved deterministically by encoding a secondary preference into
exact integer weights: total score first, then lower ground-truth ids, then
earlier finding input order. Identical inputs always produce identical
results.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from defect_bench.domain.finding import CanonicalFinding
from defect_bench.domain.ground_truth import GroundTruthFinding
from defect_bench.domain.results import FALSE_NEGATIVE, FALSE_POSITIVE, MATCHED, UNCLASSIFIED, MatchResult

from .assignment import max_weight_assignment
from .numeric import round_metric

logger = logging.getLogger(__name__)

DEFAULT_LOCATION_TOLERANCE = 3
DEFAULT_COARSE_DISCOUNT = 0.5

# Primary weights are quantised to this resolution before assignment.
WEIGHT_SCALE = 10**9


def candidate_components(edges: Iterable[Tuple[int, int]]) -> List[Tuple[List[int], List[int]]]:
    """Split (gt index, finding index) edges into connected components.

    Returns ``(gt indices, finding indices)`` per component, each list sorted,
    components ordered by their smallest gt index.
    """
    parent: Dict[Tuple[str, int], Tuple[str, int]] = {}

    def find(node: Tuple[str, int]) -> Tuple[str, int]:
        root = node
        while parent[root] != root:
            root = parent[root]
        while parent[node] != root:
            parent[node], node = root, parent[node]
        return root

    for gi, ci in edges:
        a = ("g", gi)
        b = ("c", ci)
        parent.setdefault(a, a)
        parent.setdefault(b, b)
        ra, rb = find(a), find(b)
        if ra != rb:
            parent[max(ra, rb)] = min(ra, rb)

    groups: Dict[Tuple[str, int], Tuple[List[int], List[int]]] = {}
    for node in sorted(parent):
        side, idx = node
        comp = groups.setdefault(find(node), ([], []))
        (comp[0] if side == "g" else comp[1]).append(idx)
    return sorted(groups.values(), key=lambda comp: comp[0][0])


class Matcher:
    def __init__(
        self,
        *,
        tolerance: int = DEFAULT_LOCATION_TOLERANCE,
        coarse_discount: float = DEFAULT_COARSE_DISCOUNT,
    ) -> None:
        if isinstance(tolerance, bool) or int(tolerance) != tolerance or tolerance < 0:
            raise ValueError(f"tolerance must be a non-negative integer, got {tolerance!r}")
        if not 0.0 < float(coarse_discount) <= 1.0:
            raise ValueError(f"coarse_discount must be within (0, 1], got {coarse_discount!r}")
        self.tolerance = int(tolerance)
        self.coarse_discount = float(coarse_discount)

    def settings(self) -> Dict[str, object]:
        return {"tolerance": self.tolerance, "coarse_discount": self.coarse_discount}

    def pair_weight(self, finding: CanonicalFinding, gt: GroundTruthFinding) -> Optional[float]:
        """Weight of (finding, gt), or None if the pair is not a candidate."""
        if finding.file != gt.file:
            return None
        confidence = finding.confidence_for(gt.category)
        if confidence <= 0.0:
            return None
        if finding.coarse_location or finding.line is None:
            return confidence * self.coarse_discount
        distance = abs(finding.line - gt.location.midpoint)
        if distance > self.tolerance:
            return None
        proximity = max(0.0, 1.0 - distance / (self.tolerance + 1))
        return confidence * proximity

    def match(
        self,
        findings: Sequence[CanonicalFinding],
        ground_truth: Sequence[GroundTruthFinding],
    ) -> List[MatchResult]:
        gt_by_file: Dict[str, List[GroundTruthFinding]] = defaultdict(list)
        for g in ground_truth:
            gt_by_file[g.file].append(g)
        f_by_file: Dict[str, List[CanonicalFinding]] = defaultdict(list)
        for f in findings:
            f_by_file[f.file].append(f)

        results: List[MatchResult] = []
        for file in sorted(set(gt_by_file) | set(f_by_file)):
            gts = sorted(gt_by_file.get(file, []), key=lambda g: (g.id, g.sample_id, g.location.line_start))
            fs = sorted(f_by_file.get(file, []), key=lambda f: f.index)
            results.extend(self._match_file(fs, gts))

        results.sort(key=lambda r: r.sort_key())
        logger.debug(
            "Matched %d findings against %d ground-truth entries: %d pairs",
            len(findings),
            len(ground_truth),
            sum(1 for r in results if r.kind == MATCHED),
        )
        return results

    def _match_file(
        self,
        findings: List[CanonicalFinding],
        gts: List[GroundTruthFinding],
    ) -> List[MatchResult]:
        n_g = len(gts)
        n_c = len(findings)
        raw_weights: Dict[Tuple[int, int], float] = {}
        for gi, g in enumerate(gts):
            for ci, f in enumerate(findings):
                w = self.pair_weight(f, g)
                if w is not None:
                    raw_weights[(gi, ci)] = w

        pairs: List[Tuple[int, int]] = []
        if raw_weights:
            # Secondary preference: lower gt rank, then earlier finding. K exceeds
            # any possible sum of secondary bonuses, so it never outweighs one unit
            # of primary weight.
            max_bonus = n_g * (n_c + 1) + n_c
            k = min(n_g, n_c) * max_bonus + 1
            edges: Dict[Tuple[int, int], int] = {}
            for (gi, ci), w in raw_weights.items():
                primary = max(1, int(round(w * WEIGHT_SCALE)))
                bonus = (n_g - gi) * (n_c + 1) + (n_c - ci)
                edges[(gi, ci)] = primary * k + bonus
            # The objective is a sum over pairs, so solving each connected
            # component of the candidate graph on its own is exact. Findings
            # with no candidate never enter a matrix.
            for comp_g, comp_c in candidate_components(edges):
                matrix = [[edges.get((gi, ci), 0) for ci in comp_c] for gi in comp_g]
                for r, c in max_weight_assignment(matrix):
                    pairs.append((comp_g[r], comp_c[c]))

        out: List[MatchResult] = []
        matched_g = set()
        matched_c = set()
        for gi, ci in pairs:
            matched_g.add(gi)
            matched_c.add(ci)
            out.append(
                MatchResult(
                    kind=MATCHED,
                    finding=findings[ci],
                    ground_truth=gts[gi],
                    score=round_metric(raw_weights[(gi, ci)]),
                )
            )
        for gi, g in enumerate(gts):
            if gi not in matched_g:
                out.append(MatchResult(kind=FALSE_NEGATIVE, ground_truth=g))
        for ci, f in enumerate(findings):
            if ci in matched_c:
                continue
            kind = UNCLASSIFIED if f.is_unclassified else FALSE_POSITIVE
            out.append(MatchResult(kind=kind, finding=f))
        return out
