"""
Factor & Scoring Module
=======================
"""
from .factor_classifier import (
    Factor,
    FactorState,
    FactorClassifier,
    MarketContext,
    FACTOR_DESCRIPTIONS,
    classify_factors
)
from .scoring import (
    ScoringEngine,
    DailyScore,
    DailyPrediction,
    ScoreSummary,
    PredictionTier,
    score_series
)

__all__ = [
    'Factor',
    'FactorState',
    'FactorClassifier',
    'MarketContext',
    'FACTOR_DESCRIPTIONS',
    'classify_factors',
    'ScoringEngine',
    'DailyScore',
    'DailyPrediction',
    'ScoreSummary',
    'PredictionTier',
    'score_series'
]
