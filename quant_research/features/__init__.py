"""
Feature Engineering Module
==========================
"""
from .feature_engine import (
    FeatureEngine,
    FeatureSet,
    TechnicalIndicators,
    IndicatorSet,
    EnrichedPricePoint,
    enrich_with_indicators
)

moving_average = TechnicalIndicators.moving_average
rsi = TechnicalIndicators.rsi
bollinger_band_width = TechnicalIndicators.bollinger_band_width
pct_change = TechnicalIndicators.pct_change

__all__ = [
    'FeatureEngine',
    'FeatureSet',
    'TechnicalIndicators',
    'IndicatorSet',
    'EnrichedPricePoint',
    'enrich_with_indicators',
    'moving_average',
    'rsi',
    'bollinger_band_width',
    'pct_change'
]
