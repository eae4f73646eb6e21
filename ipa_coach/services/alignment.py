"""Dynamic time warping between feature sequences."""

import math

import numpy as np


def euclidean_distance(a: np.ndarray, b: np.ndarray) -> float:
    return float(np.sqrt(np.sum((np.asarray(a) - np.asarray(b)) ** 2)))


def _as_sequence(seq) -> np.ndarray:
    arr = np.asarray(seq, dtype=np.float64)
    if arr.size == 0:
        return arr.reshape(0, 0)
    if arr.ndim == 1:
        arr = arr[:, None]
    return arr


def dtw_align(seq_a, seq_b) -> float:
    """
    Minimum cumulative Euclidean cost of aligning two feature sequences.

    Classic DTW over an (n+1) x (m+1) cost matrix with steps down, right and
    diagonal. Only the terminal cost is computed; there is no path
    backtracking.

    Returns:
        Non-negative cost, or infinity if either sequence is empty
    """
    a = _as_sequence(seq_a)
    b = _as_sequence(seq_b)
    n, m = len(a), len(b)
    if n == 0 or m == 0:
        return math.inf

    # Pairwise frame distances, shape (n, m)
    dist = np.sqrt(((a[:, None, :] - b[None, :, :]) ** 2).sum(axis=2))

    dtw = np.full((n + 1, m + 1), np.inf)
    dtw[0, 0] = 0.0
    for i in range(1, n + 1):
        prev = dtw[i - 1]
        row = dtw[i]
        d = dist[i - 1]
        for j in range(1, m + 1):
            row[j] = d[j - 1] + min(prev[j], row[j - 1], prev[j - 1])

    return float(dtw[n, m])
