"""Minimum-cost assignment (Hungarian / Kuhn-Munkres) for square cost matrices."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np


def solve_assignment(cost: Sequence[Sequence[float]] | np.ndarray) -> list[int]:
    """Return the column assigned to each row of a square cost matrix.

    Potentials + shortest augmenting path, O(n^3). Ties are broken toward the
    lowest column index, so the result is deterministic for a given matrix.
    Raises ValueError if the matrix is not square or has non-finite entries.
    """
    c = np.asarray(cost, dtype=np.float64)
    if c.size == 0:
        return []
    if c.ndim != 2 or c.shape[0] != c.shape[1]:
        raise ValueError(f"Cost matrix must be square, got shape {c.shape}")
    if not np.isfinite(c).all():
        raise ValueError("Cost matrix contains non-finite entries")

    n = c.shape[0]
    # 1-based potentials and matching; column 0 is the virtual source
    u = np.zeros(n + 1)
    v = np.zeros(n + 1)
    p = np.zeros(n + 1, dtype=np.int64)  # p[j] = row matched to column j
    way = np.zeros(n + 1, dtype=np.int64)

    for i in range(1, n + 1):
        p[0] = i
        j0 = 0
        minv = np.full(n + 1, np.inf)
        used = np.zeros(n + 1, dtype=bool)

        while True:
            used[j0] = True
            i0 = p[j0]
            free = ~used
            reduced = np.empty(n + 1)
            reduced[0] = np.inf
            reduced[1:] = c[i0 - 1] - u[i0] - v[1:]

            improved = free & (reduced < minv)
            minv[improved] = reduced[improved]
            way[improved] = j0

            candidates = np.where(free, minv, np.inf)
            j1 = int(np.argmin(candidates))
            delta = candidates[j1]

            u[p[used]] += delta
            v[used] -= delta
            minv[free] -= delta

            j0 = j1
            if p[j0] == 0:
                break

        # Augment along the alternating path
        while True:
            j1 = way[j0]
            p[j0] = p[j1]
            j0 = j1
            if j0 == 0:
                break

    assignment = [-1] * n
    for j in range(1, n + 1):
        if p[j] > 0:
            assignment[p[j] - 1] = j - 1
    return assignment
