"""
Statistical helpers shared by the correlation and feature-importance analyzers.

Degenerate inputs resolve to defined values: zero-variance correlation is 0,
an all-zero vector normalizes to zeros, and a constant target carries no
information gain.
"""

import numpy as np
from typing import Sequence


def pearson_correlation(x: Sequence[float], y: Sequence[float]) -> float:
    """Pearson product-moment coefficient; 0 for mismatched, empty or flat input."""
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if len(x) != len(y) or len(x) == 0:
        return 0.0

    dx = x - x.mean()
    dy = y - y.mean()
    denom = np.sqrt((dx * dx).sum() * (dy * dy).sum())
    if denom == 0:
        return 0.0

    r = float((dx * dy).sum() / denom)
    return min(max(r, -1.0), 1.0)


def entropy(p: float) -> float:
    """Binary entropy in bits."""
    if p <= 0 or p >= 1:
        return 0.0
    return float(-p * np.log2(p) - (1 - p) * np.log2(1 - p))


def information_gain(feature: Sequence[float], target: Sequence[float]) -> float:
    """
    Entropy reduction in a binary target from a median split of the feature.

    Values at or below the median go left, the rest go right. The median is
    the element at position ``n // 2`` of the sorted feature.
    """
    feature = np.asarray(feature, dtype=float)
    target = np.asarray(target, dtype=float)
    if len(feature) != len(target) or len(feature) == 0:
        return 0.0

    n = len(feature)
    base_entropy = entropy(target.mean())

    median = np.sort(feature)[n // 2]
    left = target[feature <= median]
    right = target[feature > median]

    left_entropy = entropy(left.mean()) if len(left) else 0.0
    right_entropy = entropy(right.mean()) if len(right) else 0.0

    conditional = (len(left) / n) * left_entropy + (len(right) / n) * right_entropy
    return max(base_entropy - conditional, 0.0)


def normalize(values: Sequence[float]) -> np.ndarray:
    """Divide by the maximum; all zeros when the maximum is not positive."""
    values = np.asarray(values, dtype=float)
    if len(values) == 0:
        return values
    max_value = max(values.max(), 0.0)
    if max_value == 0:
        return np.zeros_like(values)
    return values / max_value
