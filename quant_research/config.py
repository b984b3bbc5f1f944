"""
Configuration Management
========================
Central configuration for the research pipeline.

Every policy constant used by the scoring, analysis and simulation stages
lives here so callers can override it without touching the algorithms.
"""

from dataclasses import dataclass, field, asdict
from typing import Dict
import json
import os


@dataclass
class DataConfig:
    """Data module configuration."""
    # Market codes: 'US' resolves through Yahoo directly, 'VN' gets a suffix
    default_market: str = "US"
    fallback_market: str = "VN"

    # History window used when no start date is supplied
    lookback_days: int = 365

    # Caching
    use_cache: bool = True
    cache_ttl_seconds: int = 900

    # Synthetic bars instead of yfinance
    use_mock: bool = False


@dataclass
class IndicatorConfig:
    """Indicator engine configuration."""
    ma_short: int = 20
    ma_medium: int = 50
    ma_long: int = 200
    rsi_period: int = 14
    bollinger_period: int = 20
    bollinger_std: float = 2.0
    volume_ma_period: int = 20


@dataclass
class FactorConfig:
    """Factor classifier thresholds."""
    volume_spike_multiplier: float = 1.5
    rsi_threshold: float = 60.0
    earnings_window_days: int = 3
    # Fraction of float sold short above which a rising day counts as covering
    short_interest_threshold: float = 0.15


def _default_weights() -> Dict[str, float]:
    return {
        "volume_spike": 0.25,
        "break_ma50": 0.15,
        "break_ma200": 0.15,
        "rsi_over_60": 0.10,
        "market_up": 0.10,
        "sector_up": 0.10,
        "earnings_window": 0.05,
        "news_positive": 0.05,
        "short_covering": 0.03,
        "macro_tailwind": 0.02,
    }


@dataclass
class ScoreConfig:
    """
    Daily score configuration.

    Weights need not sum to 1. A day is above threshold only when its score
    reaches ``threshold`` and at least ``min_factors_required`` factors are
    active. The MODERATE tier starts at ``threshold * moderate_ratio``.
    """
    weights: Dict[str, float] = field(default_factory=_default_weights)
    threshold: float = 0.45
    min_factors_required: int = 3
    moderate_ratio: float = 0.5

    def weight(self, factor) -> float:
        """Weight for a factor (enum member or its string value)."""
        key = getattr(factor, "value", factor)
        return self.weights.get(key, 0.0)

    @property
    def max_score(self) -> float:
        """Maximum attainable score: every configured weight active."""
        return sum(self.weights.values())

    @property
    def moderate_threshold(self) -> float:
        return self.threshold * self.moderate_ratio

    def merged(self, weights: Dict = None, threshold: float = None) -> "ScoreConfig":
        """Copy with weights overlaid on the current ones and an optional new threshold."""
        merged_weights = dict(self.weights)
        for factor, value in (weights or {}).items():
            merged_weights[getattr(factor, "value", factor)] = value
        return ScoreConfig(
            weights=merged_weights,
            threshold=self.threshold if threshold is None else threshold,
            min_factors_required=self.min_factors_required,
            moderate_ratio=self.moderate_ratio,
        )


@dataclass
class AnalyzerConfig:
    """Correlation, feature-importance and pattern-matching configuration."""
    # 0 pairs a day's factors with that day's return, 1 with the next day's
    forward_lag: int = 0
    # Used only when the binary "strong move" correlation target is requested
    strong_move_pct: float = 4.0

    # Feature importance
    target_pct: float = 0.03
    top_n: int = 10
    min_raw_days: int = 30
    min_valid_rows: int = 10
    correlation_weight: float = 0.6
    information_gain_weight: float = 0.4

    # Pattern matching
    similarity_threshold: float = 0.5
    max_pattern_matches: int = 10

    # Extra rows fetched ahead of a page so MA200 is accurate
    lookback_rows: int = 210

    # Default significant-move cut-off (percent)
    min_pct_change: float = 4.0


@dataclass
class SimulationConfig:
    """Price-path simulator policy constants."""
    method_weights: Dict[str, float] = field(default_factory=lambda: {
        "prediction_score": 0.40,
        "factor_based": 0.40,
        "historical_patterns": 0.20,
    })
    scenario_multipliers: Dict[str, float] = field(default_factory=lambda: {
        "optimistic": 1.20,
        "pessimistic": 0.80,
        "base": 1.00,
    })
    scenario_probabilities: Dict[str, float] = field(default_factory=lambda: {
        "optimistic": 0.25,
        "pessimistic": 0.25,
        "base": 0.50,
    })
    default_return_per_score: float = 2.0
    below_threshold_damping: float = 0.5
    price_floor: float = 0.01


@dataclass
class SystemConfig:
    """Master system configuration."""
    data: DataConfig = field(default_factory=DataConfig)
    indicators: IndicatorConfig = field(default_factory=IndicatorConfig)
    factors: FactorConfig = field(default_factory=FactorConfig)
    scoring: ScoreConfig = field(default_factory=ScoreConfig)
    analyzer: AnalyzerConfig = field(default_factory=AnalyzerConfig)
    simulation: SimulationConfig = field(default_factory=SimulationConfig)

    log_level: str = "INFO"

    def save(self, filepath: str):
        """Save configuration to JSON file."""
        directory = os.path.dirname(filepath)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(filepath, 'w') as f:
            json.dump(self._to_dict(), f, indent=2)

    @classmethod
    def load(cls, filepath: str) -> 'SystemConfig':
        """Load configuration from JSON file."""
        with open(filepath, 'r') as f:
            data = json.load(f)
        return cls._from_dict(data)

    def _to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def _from_dict(cls, data: dict) -> 'SystemConfig':
        """Create from dictionary; missing sections keep their defaults."""
        sections = {
            'data': DataConfig,
            'indicators': IndicatorConfig,
            'factors': FactorConfig,
            'scoring': ScoreConfig,
            'analyzer': AnalyzerConfig,
            'simulation': SimulationConfig,
        }
        kwargs = {
            name: section_cls(**data.get(name, {}))
            for name, section_cls in sections.items()
        }
        return cls(log_level=data.get('log_level', 'INFO'), **kwargs)


# Default configuration instance
DEFAULT_CONFIG = SystemConfig()
