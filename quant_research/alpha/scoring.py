"""
Scoring Engine
==============
Weighted daily scores, prediction tiers and score summaries.

A day's score is the sum of the configured weights of its active factors.
The prediction tier compares the score against the configured threshold and
a secondary MODERATE band at ``threshold * moderate_ratio``.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, List, Optional
import logging

from .factor_classifier import Factor, FactorState, FACTOR_DESCRIPTIONS

logger = logging.getLogger(__name__)


class PredictionTier(Enum):
    """Likelihood of a strong move implied by a score."""
    HIGH_PROBABILITY = "HIGH_PROBABILITY"
    MODERATE = "MODERATE"
    LOW = "LOW"


@dataclass
class DailyScore:
    """Score for one day with per-factor contributions."""
    date: Optional[date]
    score: float
    factor_count: int
    above_threshold: bool
    breakdown: Dict[Factor, float]
    active_factors: List[Factor] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'date': self.date.isoformat() if self.date else None,
            'score': self.score,
            'factor_count': self.factor_count,
            'above_threshold': self.above_threshold,
            'breakdown': {f.value: c for f, c in self.breakdown.items()},
            'factors': [f.value for f in self.active_factors]
        }


@dataclass
class DailyPrediction:
    """Prediction for a supplied factor state."""
    symbol: str
    date: date
    score: float
    prediction: PredictionTier
    confidence: float
    active_factors: List[dict]
    recommendations: List[str]
    threshold: float
    interpretation: str
    above_threshold: bool

    def to_dict(self) -> dict:
        return {
            'symbol': self.symbol,
            'date': self.date.isoformat(),
            'score': self.score,
            'prediction': self.prediction.value,
            'confidence': self.confidence,
            'active_factors': self.active_factors,
            'recommendations': self.recommendations,
            'threshold': self.threshold,
            'interpretation': self.interpretation,
            'above_threshold': self.above_threshold
        }


@dataclass
class ScoreSummary:
    """Aggregate statistics over a series of daily scores."""
    total_days: int
    high_score_days: int
    high_score_percentage: float
    average_score: float
    max_score: float
    min_score: float
    # Percent of above-threshold days on which each factor was active
    factor_frequency: Dict[Factor, float]

    def to_dict(self) -> dict:
        return {
            'total_days': self.total_days,
            'high_score_days': self.high_score_days,
            'high_score_percentage': self.high_score_percentage,
            'average_score': self.average_score,
            'max_score': self.max_score,
            'min_score': self.min_score,
            'factor_frequency': {f.value: v for f, v in self.factor_frequency.items()}
        }


class ScoringEngine:
    """Combines factor flags with configured weights."""

    def __init__(self, config=None):
        from ..config import ScoreConfig
        self.config = config or ScoreConfig()

    def score(self, state: FactorState) -> DailyScore:
        """Score one day."""
        breakdown = {}
        for factor in Factor:
            breakdown[factor] = self.config.weight(factor) if state.flags.get(factor) else 0.0

        active = state.active_factors
        total = sum(breakdown.values())
        above = total >= self.config.threshold and len(active) >= self.config.min_factors_required

        return DailyScore(
            date=state.date,
            score=total,
            factor_count=len(active),
            above_threshold=above,
            breakdown=breakdown,
            active_factors=active
        )

    def score_series(self, states: List[FactorState]) -> List[DailyScore]:
        return [self.score(state) for state in states]

    def tier(self, score: float) -> PredictionTier:
        """Map a score to a prediction tier."""
        if score >= self.config.threshold:
            return PredictionTier.HIGH_PROBABILITY
        elif score >= self.config.moderate_threshold:
            return PredictionTier.MODERATE
        return PredictionTier.LOW

    def confidence(self, score: float) -> float:
        """Score as a fraction of the maximum attainable score, clipped to [0, 1]."""
        max_score = self.config.max_score
        if max_score <= 0:
            return 0.0
        return min(max(score / max_score, 0.0), 1.0)

    def predict(self, symbol: str, state: FactorState,
                as_of: Optional[date] = None) -> DailyPrediction:
        """Daily prediction with recommendations for a factor state."""
        daily = self.score(state)
        tier = self.tier(daily.score)

        active = [
            {
                'factor': f.value,
                'name': FACTOR_DESCRIPTIONS[f]['name'],
                'description': FACTOR_DESCRIPTIONS[f]['description'],
                'weight': self.config.weight(f)
            }
            for f in daily.active_factors
        ]

        return DailyPrediction(
            symbol=symbol,
            date=as_of or state.date or date.today(),
            score=daily.score,
            prediction=tier,
            confidence=self.confidence(daily.score),
            active_factors=active,
            recommendations=self._recommendations(tier, state),
            threshold=self.config.threshold,
            interpretation=self._interpretation(symbol, tier),
            above_threshold=daily.above_threshold
        )

    def summarize(self, scores: List[DailyScore]) -> ScoreSummary:
        """Summary statistics over a series of daily scores."""
        total = len(scores)
        high = [s for s in scores if s.above_threshold]
        values = [s.score for s in scores]

        counts = {f: 0 for f in Factor}
        for s in high:
            for f in s.active_factors:
                counts[f] += 1

        frequency = {
            f: (count / len(high)) * 100 if high else 0.0
            for f, count in counts.items()
        }

        return ScoreSummary(
            total_days=total,
            high_score_days=len(high),
            high_score_percentage=(len(high) / total) * 100 if total else 0.0,
            average_score=sum(values) / total if total else 0.0,
            max_score=max(values) if values else 0.0,
            min_score=min(values) if values else 0.0,
            factor_frequency=frequency
        )

    def _recommendations(self, tier: PredictionTier, state: FactorState) -> List[str]:
        recs = []
        if tier == PredictionTier.HIGH_PROBABILITY:
            recs.append("Strong factor alignment: monitor closely for a strong upward move")
        elif tier == PredictionTier.MODERATE:
            recs.append("Partial factor alignment: wait for additional confirming factors")
        else:
            recs.append("Few supporting factors: no strong movement expected")

        if state.is_active(Factor.VOLUME_SPIKE):
            recs.append("Volume spike present: confirm follow-through volume next session")
        if state.is_active(Factor.EARNINGS_WINDOW):
            recs.append("Earnings release nearby: expect elevated volatility")

        missing = [f for f in Factor if not state.is_active(f) and self.config.weight(f) > 0]
        if missing and tier != PredictionTier.HIGH_PROBABILITY:
            strongest = max(missing, key=self.config.weight)
            recs.append(f"Watch for {FACTOR_DESCRIPTIONS[strongest]['name']} to strengthen the signal")

        return recs

    def _interpretation(self, symbol: str, tier: PredictionTier) -> str:
        if tier == PredictionTier.HIGH_PROBABILITY:
            return f"{symbol} shows high probability of strong upward movement based on current factors"
        elif tier == PredictionTier.MODERATE:
            return f"{symbol} shows moderate potential for price movement"
        return f"{symbol} shows low probability of significant movement today"


def score_series(states: List[FactorState], config=None) -> List[DailyScore]:
    """Score a series of factor states."""
    return ScoringEngine(config).score_series(states)
