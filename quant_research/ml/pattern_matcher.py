"""
Historical Pattern Matching
===========================
Finds past days whose active-factor set overlaps the current one.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Sequence
import logging

from ..alpha.factor_classifier import Factor, FactorState

logger = logging.getLogger(__name__)


@dataclass
class HistoricalPatternMatch:
    """A past day resembling the current factor state."""
    date: Optional[date]
    similarity: float
    actual_return: float
    factors: List[Factor] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'date': self.date.isoformat() if self.date else None,
            'similarity': round(self.similarity, 2),
            'actual_return': self.actual_return,
            'factors': [f.value for f in self.factors]
        }


def similarity(current: set, historical: set) -> float:
    """Overlap of two active-factor sets relative to the larger one."""
    return len(current & historical) / max(len(current), len(historical), 1)


class PatternMatcher:
    """Ranks historical days by factor overlap with a current state."""

    def __init__(self, threshold: float = 0.5, max_matches: int = 10):
        self.threshold = threshold
        self.max_matches = max_matches

    @classmethod
    def from_config(cls, config=None) -> 'PatternMatcher':
        from ..config import AnalyzerConfig
        config = config or AnalyzerConfig()
        return cls(config.similarity_threshold, config.max_pattern_matches)

    def find(self, current: FactorState, states: List[FactorState],
             series: Sequence) -> List[HistoricalPatternMatch]:
        """
        Best matches for ``current`` among ``states``.

        ``series`` is aligned with ``states`` and supplies each day's
        ``pct_change`` as the match's actual return. An empty current state
        matches nothing.
        """
        current_set = current.active_set
        if not current_set:
            return []

        matches = []
        for state, point in zip(states, series):
            historical = state.active_set
            score = similarity(current_set, historical)
            if score >= self.threshold:
                pct = point.pct_change
                matches.append(HistoricalPatternMatch(
                    date=state.date,
                    similarity=score,
                    actual_return=float(pct) if pct is not None else 0.0,
                    factors=state.active_factors
                ))

        # sorted() is stable, so ties keep chronological order
        matches = sorted(matches, key=lambda m: m.similarity, reverse=True)
        logger.debug(f"Pattern matcher kept {len(matches)} of {len(states)} days")
        return matches[:self.max_matches]


def find_historical_patterns(current: FactorState, states: List[FactorState],
                             series: Sequence, config=None) -> List[HistoricalPatternMatch]:
    """Pattern matches using configured threshold and limit."""
    return PatternMatcher.from_config(config).find(current, states, series)


def pattern_return(matches: List[HistoricalPatternMatch]) -> float:
    """Similarity-weighted mean of matched returns; 0 without matches."""
    total_weight = sum(m.similarity for m in matches)
    if total_weight <= 0:
        return 0.0
    return sum(m.similarity * m.actual_return for m in matches) / total_weight
