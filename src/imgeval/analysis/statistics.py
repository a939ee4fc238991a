"""Descriptive statistics over score sequences.

All functions are pure and return plain ``float`` values. Standard deviation is the
sample (n-1) estimate everywhere; population variance is exposed separately for the
cross-run agreement metric.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np


@dataclass(frozen=True)
class BoxPlotSummary:
    min: float = 0.0
    q1: float = 0.0
    median: float = 0.0
    q3: float = 0.0
    max: float = 0.0
    mean: float = 0.0


@dataclass(frozen=True)
class StatisticalSummary:
    mean: float
    median: float
    standard_deviation: float
    min: float
    max: float
    count: int


def _as_array(values: Sequence[float]) -> np.ndarray:
    return np.asarray(list(values), dtype=float)


def mean(values: Sequence[float]) -> float:
    arr = _as_array(values)
    if arr.size == 0:
        return 0.0
    return float(np.mean(arr))


def median(values: Sequence[float]) -> float:
    arr = _as_array(values)
    if arr.size == 0:
        return 0.0
    return float(np.median(arr))


def standard_deviation(values: Sequence[float]) -> float:
    arr = _as_array(values)
    if arr.size <= 1:
        return 0.0
    return float(np.std(arr, ddof=1))


def population_variance(values: Sequence[float]) -> float:
    arr = _as_array(values)
    if arr.size == 0:
        return 0.0
    return float(np.var(arr, ddof=0))


def quartile(sorted_values: Sequence[float], q: float) -> float:
    """Linear-interpolation percentile at position ``(n - 1) * q``.

    ``sorted_values`` must already be ascending.
    """
    if not 0.0 <= q <= 1.0:
        raise ValueError(f"quantile must be within [0, 1], got {q}")
    arr = _as_array(sorted_values)
    if arr.size == 0:
        return 0.0
    position = (arr.size - 1) * q
    lower = int(np.floor(position))
    upper = int(np.ceil(position))
    if lower == upper:
        return float(arr[lower])
    fraction = position - lower
    return float(arr[lower] + (arr[upper] - arr[lower]) * fraction)


def box_plot_summary(values: Sequence[float]) -> BoxPlotSummary:
    ordered = sorted(float(v) for v in values)
    if not ordered:
        return BoxPlotSummary()
    return BoxPlotSummary(
        min=ordered[0],
        q1=quartile(ordered, 0.25),
        median=median(ordered),
        q3=quartile(ordered, 0.75),
        max=ordered[-1],
        mean=mean(ordered),
    )


def summarize(values: Sequence[float], digits: int = 2) -> StatisticalSummary | None:
    ordered = [float(v) for v in values]
    if not ordered:
        return None
    return StatisticalSummary(
        mean=round(mean(ordered), digits),
        median=round(median(ordered), digits),
        standard_deviation=round(standard_deviation(ordered), digits),
        min=round(min(ordered), digits),
        max=round(max(ordered), digits),
        count=len(ordered),
    )
