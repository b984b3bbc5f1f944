"""
Feature Importance Analysis
===========================
Ranks lagged technical features by how well they anticipate a strong
intraday move.

Each row pairs yesterday's indicator readings with a binary target: whether
today's close exceeds today's open by ``target_pct``. Features are ranked by
a blend of absolute Pearson correlation and median-split information gain,
each normalized by its own maximum.
"""

import pandas as pd
import numpy as np
from dataclasses import dataclass
from datetime import date
from typing import List, Optional
import logging

from ..features.feature_engine import EnrichedPricePoint
from ..exceptions import InsufficientDataError
from .statistics import pearson_correlation, information_gain, normalize

logger = logging.getLogger(__name__)

FEATURE_NAMES = [
    'lag_rsi',
    'lag_above_sma20',
    'lag_bb_width',
    'lag_vol_spike',
    'lag_return',
    'lag_low_vol',
]

VOLUME_SPIKE_MULTIPLIER = 1.5
LOW_VOLUME_MULTIPLIER = 0.7


@dataclass
class FeatureImportanceParams:
    """Request for a feature-importance run."""
    symbol: Optional[str] = None
    market: Optional[str] = None
    start_date: Optional[date] = None
    target_pct: Optional[float] = None
    top_n: Optional[int] = None
    stock_analysis_id: Optional[int] = None


@dataclass
class FeatureImportanceItem:
    """Ranking entry for one feature."""
    factor: str
    correlation: float
    information_gain: float
    importance: float
    weight: float

    def to_dict(self) -> dict:
        return {
            'factor': self.factor,
            'weight': self.weight,
            'importance': self.importance,
            'correlation': self.correlation,
            'information_gain': self.information_gain
        }


@dataclass
class FeatureImportanceResult:
    """Full feature-importance report."""
    symbol: str
    market: Optional[str]
    start_date: date
    end_date: date
    target_pct: float
    total_days: int
    strong_days: int
    top_factors: List[FeatureImportanceItem]
    all_features: List[FeatureImportanceItem]
    method: str = 'correlation_and_entropy'

    @property
    def strong_days_percentage(self) -> float:
        return (self.strong_days / self.total_days) * 100 if self.total_days else 0.0

    @property
    def baseline_accuracy(self) -> float:
        return self.strong_days / self.total_days if self.total_days else 0.0

    def to_dict(self) -> dict:
        return {
            'symbol': self.symbol,
            'market': self.market,
            'start_date': self.start_date.isoformat(),
            'end_date': self.end_date.isoformat(),
            'target_pct': self.target_pct,
            'statistics': {
                'total_days': self.total_days,
                'strong_days': self.strong_days,
                'strong_days_percentage': self.strong_days_percentage
            },
            'top_factors': [item.to_dict() for item in self.top_factors],
            'all_features': [item.to_dict() for item in self.all_features],
            'model_accuracy': {
                'baseline_accuracy': self.baseline_accuracy,
                'feature_importance_method': self.method
            }
        }


def build_lagged_dataset(enriched: List[EnrichedPricePoint], target_pct: float = 0.03) -> pd.DataFrame:
    """
    One row per day from the second onward: yesterday's features, today's target.

    Rows with any missing lagged feature are dropped. When today's open is
    unknown, yesterday's close stands in for it.
    """
    columns = FEATURE_NAMES + ['target']
    if len(enriched) < 2:
        return pd.DataFrame(columns=columns)

    frame = pd.DataFrame({
        'open': [p.point.open for p in enriched],
        'close': [p.close for p in enriched],
        'volume': [p.point.volume for p in enriched],
        'pct_change': [p.pct_change for p in enriched],
        'ma20': [p.indicators.ma20 for p in enriched],
        'rsi14': [p.indicators.rsi14 for p in enriched],
        'volume_ma20': [p.indicators.volume_ma20 for p in enriched],
        'bb_width': [p.indicators.bollinger_band_width20 for p in enriched],
    }, index=pd.DatetimeIndex([pd.Timestamp(p.date) for p in enriched], name='date'), dtype=float)

    prev = frame.shift(1)
    has_volume = (prev['volume'] > 0) & (prev['volume_ma20'] > 0)

    dataset = pd.DataFrame(index=frame.index)
    dataset['lag_rsi'] = prev['rsi14']
    dataset['lag_above_sma20'] = (prev['close'] > prev['ma20']).astype(float).where(prev['ma20'].notna())
    dataset['lag_bb_width'] = prev['bb_width']
    dataset['lag_vol_spike'] = (
        prev['volume'] > prev['volume_ma20'] * VOLUME_SPIKE_MULTIPLIER
    ).astype(float).where(has_volume)
    dataset['lag_return'] = prev['pct_change']
    dataset['lag_low_vol'] = (
        prev['volume'] < prev['volume_ma20'] * LOW_VOLUME_MULTIPLIER
    ).astype(float).where(has_volume)

    open_price = frame['open'].fillna(prev['close'])
    strong = (open_price > 0) & (frame['close'] > open_price * (1 + target_pct))
    dataset['target'] = strong.astype(int)

    dataset = dataset.iloc[1:].replace([np.inf, -np.inf], np.nan)
    return dataset.dropna(subset=FEATURE_NAMES)


class FeatureImportanceAnalyzer:
    """Correlation-and-entropy feature ranking."""

    def __init__(self, config=None):
        from ..config import AnalyzerConfig
        self.config = config or AnalyzerConfig()

    def rank(self, dataset: pd.DataFrame) -> List[FeatureImportanceItem]:
        """Rank every feature column of a lagged dataset, highest importance first."""
        target = dataset['target'].to_numpy(dtype=float)

        correlations = []
        gains = []
        for name in FEATURE_NAMES:
            values = dataset[name].to_numpy(dtype=float)
            correlations.append(abs(pearson_correlation(values, target)))
            gains.append(information_gain(values, target))

        norm_corr = normalize(correlations)
        norm_gain = normalize(gains)

        items = []
        for i, name in enumerate(FEATURE_NAMES):
            importance = float(
                self.config.correlation_weight * norm_corr[i]
                + self.config.information_gain_weight * norm_gain[i]
            )
            items.append(FeatureImportanceItem(
                factor=name,
                correlation=correlations[i],
                information_gain=gains[i],
                importance=importance,
                weight=importance
            ))

        return sorted(items, key=lambda item: item.importance, reverse=True)

    def compute(self, enriched: List[EnrichedPricePoint], symbol: str,
                market: Optional[str] = None,
                start_date: Optional[date] = None,
                target_pct: Optional[float] = None,
                top_n: Optional[int] = None) -> FeatureImportanceResult:
        """
        Feature importance over an enriched series.

        Raises:
            InsufficientDataError: fewer raw days or valid rows than configured
        """
        target_pct = self.config.target_pct if target_pct is None else target_pct
        top_n = self.config.top_n if top_n is None else top_n

        if len(enriched) < self.config.min_raw_days:
            raise InsufficientDataError(
                f"Not enough historical data to calculate feature importance "
                f"(minimum {self.config.min_raw_days} days required, got {len(enriched)})"
            )

        dataset = build_lagged_dataset(enriched, target_pct)
        if len(dataset) < self.config.min_valid_rows:
            raise InsufficientDataError(
                f"Not enough valid samples after feature engineering "
                f"(minimum {self.config.min_valid_rows} required, got {len(dataset)})"
            )

        ranked = self.rank(dataset)
        strong_days = int(dataset['target'].sum())

        logger.info(
            f"Feature importance for {symbol}: {len(dataset)} rows, "
            f"{strong_days} strong days, top feature {ranked[0].factor}"
        )

        return FeatureImportanceResult(
            symbol=symbol,
            market=market,
            start_date=start_date or enriched[0].date,
            end_date=enriched[-1].date,
            target_pct=target_pct,
            total_days=len(dataset),
            strong_days=strong_days,
            top_factors=ranked[:top_n],
            all_features=ranked
        )
