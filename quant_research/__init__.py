"""
Quantitative Stock Research
===========================

Factor-based research toolkit for individual stocks:

- Technical indicators over daily price bars (MA, RSI, Bollinger width)
- Boolean technical/market/sentiment factors per day
- Weighted daily scores and prediction tiers
- Factor-return correlation and lagged feature importance
- Historical factor-pattern matching
- Hybrid forward price-path simulation with scenarios

PIPELINE:
    ┌─────────┐
    │  DATA   │  ← daily bars (yfinance / stored analyses, CACHED)
    └────┬────┘
         ↓
    ┌──────────────┐
    │ INDICATORS   │  ← MA20/50/200, RSI14, volume MA, BB width
    └────┬─────────┘
         ↓
    ┌──────────────┐
    │ FACTORS      │  ← volume spike, MA breaks, market/sector, news...
    └────┬─────────┘
         ↓
    ┌──────────────┐
    │ SCORES       │  ← weighted sum, threshold, tiers
    └────┬─────────┘
         ↓
    ┌──────────────┐
    │ ANALYSIS     │  ← correlation, information gain, patterns
    └────┬─────────┘
         ↓
    ┌──────────────┐
    │ SIMULATION   │  ← base path, scenarios, confidence intervals
    └──────────────┘

USAGE:
    # Simulate ten trading days on synthetic data
    python -m quant_research.orchestrator --mock simulate AAPL --horizon 10 --factor volume_spike

    # Feature importance
    python -m quant_research.orchestrator importance AAPL --start-date 2024-01-01

    # Programmatic usage
    from quant_research import ResearchService, SimulationParameters

    service = ResearchService()
    result = service.simulate_price_path(SimulationParameters(
        symbol='AAPL', initial_price=190.0, time_horizon=5,
        factor_states={'volume_spike': True, 'break_ma50': True}
    ))

MODULES:
    - data: Price bars, market-data sources, analysis repository
    - features: Indicator engine
    - alpha: Factor classifier and scoring engine
    - ml: Correlation, feature importance, pattern matching
    - simulation: Price-path simulator
"""

from .config import (
    SystemConfig,
    DataConfig,
    IndicatorConfig,
    FactorConfig,
    ScoreConfig,
    AnalyzerConfig,
    SimulationConfig
)
from .exceptions import (
    QuantResearchError,
    InsufficientDataError,
    MissingParameterError,
    ExternalFetchError,
    InvalidParameterError
)
from .data import DataManager, PricePoint, InMemoryRepository
from .features import FeatureEngine, EnrichedPricePoint, enrich_with_indicators
from .alpha import (
    Factor,
    FactorState,
    MarketContext,
    FactorClassifier,
    ScoringEngine,
    DailyScore,
    PredictionTier,
    classify_factors,
    score_series
)
from .ml import (
    CorrelationEntry,
    FeatureImportanceParams,
    FeatureImportanceResult,
    HistoricalPatternMatch,
    correlate_factors,
    find_historical_patterns
)
from .simulation import PriceSimulator, SimulationParameters, SimulationResult
from .orchestrator import (
    ResearchService,
    compute_feature_importance,
    simulate_price_path,
    main
)

__version__ = "1.0.0"
__all__ = [
    # Main
    'ResearchService',
    'compute_feature_importance',
    'simulate_price_path',
    'main',

    # Config
    'SystemConfig',
    'DataConfig',
    'IndicatorConfig',
    'FactorConfig',
    'ScoreConfig',
    'AnalyzerConfig',
    'SimulationConfig',

    # Errors
    'QuantResearchError',
    'InsufficientDataError',
    'MissingParameterError',
    'ExternalFetchError',
    'InvalidParameterError',

    # Data
    'DataManager',
    'PricePoint',
    'InMemoryRepository',

    # Indicators
    'FeatureEngine',
    'EnrichedPricePoint',
    'enrich_with_indicators',

    # Factors & scores
    'Factor',
    'FactorState',
    'MarketContext',
    'FactorClassifier',
    'ScoringEngine',
    'DailyScore',
    'PredictionTier',
    'classify_factors',
    'score_series',

    # Analysis
    'CorrelationEntry',
    'FeatureImportanceParams',
    'FeatureImportanceResult',
    'HistoricalPatternMatch',
    'correlate_factors',
    'find_historical_patterns',

    # Simulation
    'PriceSimulator',
    'SimulationParameters',
    'SimulationResult'
]
