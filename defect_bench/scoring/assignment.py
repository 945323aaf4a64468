"""defect_bench.scoring.assignment

Maximum-weight bipartite assignment (Hungarian / Kuhn-Munkres).

Weights are Python ints. Float weights would make "equal" totals depend on
summation order; exact integers make the optimum, and therefore every report
built from it, reproducible.
"""

from __future__ import annotations

from typing import List, Sequence, Tuple


def max_weight_assignment(weights: Sequence[Sequence[int]]) -> List[Tuple[int, int]]:
    """Return (row, col) pairs of a maximum-weight matching.

    ``weights[r][c] <= 0`` means "no edge"; such pairs are never returned.
    The matrix may be rectangular. Runs in O(n^2 * m) for n = min(rows, cols)
    and m = max(rows, cols); the longer side is never padded.
    """
    n_rows = len(weights)
    n_cols = len(weights[0]) if n_rows else 0
    if n_rows == 0 or n_cols == 0:
        return []
    for row in weights:
        if len(row) != n_cols:
            raise ValueError("weight matrix rows must all have the same length")

    top = max(max(row) for row in weights)
    if top <= 0:
        return []

    transposed = n_rows > n_cols
    if transposed:
        weights = [[weights[r][c] for r in range(n_rows)] for c in range(n_cols)]
        n_rows, n_cols = n_cols, n_rows
    n, m = n_rows, n_cols

    # Minimisation form: cost = top - weight, non-edges cost `top`. Every row
    # gets a column; rows left on a non-edge are dropped below.
    def cost(r: int, c: int) -> int:
        w = weights[r][c]
        return top - (w if w > 0 else 0)

    inf = float("inf")
    # 1-indexed potentials and matching, column 0 is a virtual start.
    u = [0] * (n + 1)
    v = [0] * (m + 1)
    p = [0] * (m + 1)  # p[col] = row matched to col
    way = [0] * (m + 1)

    for i in range(1, n + 1):
        p[0] = i
        j0 = 0
        minv = [inf] * (m + 1)
        used = [False] * (m + 1)
        while True:
            used[j0] = True
            i0 = p[j0]
            delta = inf
            j1 = 0
            for j in range(1, m + 1):
                if used[j]:
                    continue
                cur = cost(i0 - 1, j - 1) - u[i0] - v[j]
                if cur < minv[j]:
                    minv[j] = cur
                    way[j] = j0
                if minv[j] < delta:
                    delta = minv[j]
                    j1 = j
            for j in range(m + 1):
                if used[j]:
                    u[p[j]] += delta
                    v[j] -= delta
                else:
                    minv[j] -= delta
            j0 = j1
            if p[j0] == 0:
                break
        while True:
            j1 = way[j0]
            p[j0] = p[j1]
            j0 = j1
            if j0 == 0:
                break

    pairs: List[Tuple[int, int]] = []
    for j in range(1, m + 1):
        r = p[j] - 1
        c = j - 1
        if r >= 0 and weights[r][c] > 0:
            pairs.append((c, r) if transposed else (r, c))
    pairs.sort()
    return pairs
