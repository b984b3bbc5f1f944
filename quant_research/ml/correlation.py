"""
Factor Correlation Analysis
===========================
Links each factor's activation to the price return on the same day (or a
configurable number of days later).
"""

import numpy as np
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence
import logging

from ..alpha.factor_classifier import Factor, FactorState
from ..exceptions import InsufficientDataError, InvalidParameterError
from .statistics import pearson_correlation

logger = logging.getLogger(__name__)


@dataclass
class CorrelationEntry:
    """Per-factor activation statistics."""
    occurrences: int
    avg_return: float
    correlation: float

    def to_dict(self) -> dict:
        return {
            'occurrences': self.occurrences,
            'avg_return': self.avg_return,
            'correlation': self.correlation
        }


CorrelationTable = Dict[Factor, CorrelationEntry]


@dataclass
class FactorSummary:
    """How often each factor fires across a series."""
    total_days: int
    factor_counts: Dict[Factor, int]
    factor_frequency: Dict[Factor, float]
    average_factors_per_day: float

    def to_dict(self) -> dict:
        return {
            'total_days': self.total_days,
            'factor_counts': {f.value: c for f, c in self.factor_counts.items()},
            'factor_frequency': {f.value: v for f, v in self.factor_frequency.items()},
            'average_factors_per_day': self.average_factors_per_day
        }


def correlate_factors(states: List[FactorState], series: Sequence,
                      forward_lag: int = 0,
                      strong_move_pct: Optional[float] = None) -> CorrelationTable:
    """
    Correlate every factor with price returns.

    Args:
        states: factor state per day
        series: points aligned with ``states``, each exposing ``pct_change``
        forward_lag: pair day i's factors with day i + lag's return
        strong_move_pct: when given, correlate against the binary target
            ``return >= strong_move_pct`` instead of the raw return

    Raises:
        InsufficientDataError: on an empty series, or one too short for the lag
    """
    if not states or not series:
        raise InsufficientDataError("No historical data available for factor correlation")
    if len(states) != len(series):
        raise InvalidParameterError(
            f"Factor states ({len(states)}) and price series ({len(series)}) differ in length"
        )

    n = len(states) - forward_lag
    if n <= 0:
        raise InsufficientDataError(
            f"Series of {len(states)} days is too short for a forward lag of {forward_lag}"
        )

    returns = np.array([series[i + forward_lag].pct_change for i in range(n)], dtype=float)
    returns = np.nan_to_num(returns, nan=0.0)

    if strong_move_pct is None:
        target = returns
    else:
        target = (returns >= strong_move_pct).astype(float)

    table: CorrelationTable = {}
    for factor in Factor:
        activation = np.array([1.0 if states[i].is_active(factor) else 0.0 for i in range(n)])
        active_returns = returns[activation == 1.0]

        table[factor] = CorrelationEntry(
            occurrences=int(activation.sum()),
            avg_return=float(active_returns.mean()) if len(active_returns) else 0.0,
            correlation=pearson_correlation(activation, target)
        )

    logger.info(f"Correlated {len(table)} factors over {n} days")
    return table


def summarize_factors(states: List[FactorState]) -> FactorSummary:
    """Factor counts and frequencies (percent of days)."""
    total = len(states)
    counts = {f: 0 for f in Factor}
    active_total = 0
    for state in states:
        for f in state.active_factors:
            counts[f] += 1
        active_total += state.factor_count

    return FactorSummary(
        total_days=total,
        factor_counts=counts,
        factor_frequency={f: (c / total) * 100 if total else 0.0 for f, c in counts.items()},
        average_factors_per_day=active_total / total if total else 0.0
    )
