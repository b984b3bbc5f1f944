"""
Statistical Analysis
====================

- Factor-to-return correlation tables
- Lagged feature importance (correlation + information gain)
- Historical factor-pattern matching
"""

from .statistics import (
    pearson_correlation,
    entropy,
    information_gain,
    normalize
)
from .correlation import (
    CorrelationEntry,
    CorrelationTable,
    FactorSummary,
    correlate_factors,
    summarize_factors
)
from .feature_importance import (
    FEATURE_NAMES,
    FeatureImportanceParams,
    FeatureImportanceItem,
    FeatureImportanceResult,
    FeatureImportanceAnalyzer,
    build_lagged_dataset
)
from .pattern_matcher import (
    HistoricalPatternMatch,
    PatternMatcher,
    find_historical_patterns,
    pattern_return
)

__all__ = [
    'pearson_correlation',
    'entropy',
    'information_gain',
    'normalize',
    'CorrelationEntry',
    'CorrelationTable',
    'FactorSummary',
    'correlate_factors',
    'summarize_factors',
    'FEATURE_NAMES',
    'FeatureImportanceParams',
    'FeatureImportanceItem',
    'FeatureImportanceResult',
    'FeatureImportanceAnalyzer',
    'build_lagged_dataset',
    'HistoricalPatternMatch',
    'PatternMatcher',
    'find_historical_patterns',
    'pattern_return'
]
