"""
Feature Engineering Module
==========================
Technical indicators computed over a date-ordered price series.

Every indicator returns a series of the same length as its input. Positions
where the lookback window is not yet satisfied hold NaN rather than a
fabricated value, and short inputs never raise.
"""

import pandas as pd
import numpy as np
from typing import Dict, List, Optional, Sequence, Union
from dataclasses import dataclass
import logging
import math

from ..data.data_manager import PricePoint, points_to_frame

logger = logging.getLogger(__name__)

SeriesLike = Union[pd.Series, Sequence[float]]


def _as_series(values: SeriesLike) -> pd.Series:
    if isinstance(values, pd.Series):
        return values.astype(float)
    return pd.Series(list(values), dtype=float)


class TechnicalIndicators:
    """Technical analysis indicators."""

    @staticmethod
    def moving_average(prices: SeriesLike, window: int) -> pd.Series:
        """Simple moving average; NaN until ``window`` values are available."""
        prices = _as_series(prices)
        return prices.rolling(window=window, min_periods=window).mean()

    @staticmethod
    def rsi(prices: SeriesLike, period: int = 14) -> pd.Series:
        """
        Wilder's Relative Strength Index.

        The first value appears at index ``period`` and is seeded with the
        simple mean of the first ``period`` gains and losses; later values use
        Wilder smoothing. A window with neither gains nor losses reads 50.
        """
        prices = _as_series(prices)
        values = prices.to_numpy()
        result = np.full(len(values), np.nan)

        if len(values) <= period:
            return pd.Series(result, index=prices.index)

        delta = np.diff(values)
        gains = np.clip(delta, 0, None)
        losses = np.clip(-delta, 0, None)

        avg_gain = gains[:period].mean()
        avg_loss = losses[:period].mean()
        result[period] = TechnicalIndicators._rsi_value(avg_gain, avg_loss)

        for i in range(period + 1, len(values)):
            avg_gain = (avg_gain * (period - 1) + gains[i - 1]) / period
            avg_loss = (avg_loss * (period - 1) + losses[i - 1]) / period
            result[i] = TechnicalIndicators._rsi_value(avg_gain, avg_loss)

        return pd.Series(result, index=prices.index)

    @staticmethod
    def _rsi_value(avg_gain: float, avg_loss: float) -> float:
        if avg_loss == 0:
            return 50.0 if avg_gain == 0 else 100.0
        rs = avg_gain / avg_loss
        return 100 - (100 / (1 + rs))

    @staticmethod
    def bollinger_band_width(prices: SeriesLike, window: int = 20,
                             std_multiplier: float = 2.0) -> pd.Series:
        """(upper - lower) / middle using the population standard deviation."""
        prices = _as_series(prices)
        middle = prices.rolling(window=window, min_periods=window).mean()
        std = prices.rolling(window=window, min_periods=window).std(ddof=0)

        upper = middle + std * std_multiplier
        lower = middle - std * std_multiplier

        width = (upper - lower) / middle
        return width.replace([np.inf, -np.inf], np.nan)

    @staticmethod
    def pct_change(prices: SeriesLike) -> pd.Series:
        """Close-to-close change in percent; 0 at index 0 and after a zero close."""
        prices = _as_series(prices)
        prev = prices.shift(1)
        change = (prices - prev) / prev * 100

        valid = np.isfinite(prev) & (prev != 0) & np.isfinite(change)
        return change.where(valid, 0.0)


@dataclass
class IndicatorSet:
    """Indicator values for one day; None where the window is unsatisfied."""
    ma20: Optional[float] = None
    ma50: Optional[float] = None
    ma200: Optional[float] = None
    rsi14: Optional[float] = None
    volume_ma20: Optional[float] = None
    bollinger_band_width20: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            'ma20': self.ma20,
            'ma50': self.ma50,
            'ma200': self.ma200,
            'rsi14': self.rsi14,
            'volume_ma20': self.volume_ma20,
            'bollinger_band_width20': self.bollinger_band_width20
        }


@dataclass
class EnrichedPricePoint:
    """A price point together with its indicators."""
    point: PricePoint
    indicators: IndicatorSet

    @property
    def date(self):
        return self.point.date

    @property
    def close(self) -> float:
        return self.point.close

    @property
    def pct_change(self) -> float:
        return self.point.pct_change

    def to_dict(self) -> dict:
        return {**self.point.to_dict(), **self.indicators.to_dict()}


@dataclass
class FeatureSet:
    """Container for computed indicator columns."""
    symbol: str
    features: pd.DataFrame
    feature_names: List[str]
    timestamp: pd.Timestamp


def _defined(value) -> Optional[float]:
    value = float(value)
    return value if math.isfinite(value) else None


class FeatureEngine:
    """
    Indicator engine.

    Turns a raw price series into the enriched series consumed by the
    factor classifier and the feature-importance analyzer.
    """

    def __init__(self, config=None):
        from ..config import IndicatorConfig
        self.config = config or IndicatorConfig()
        self.technical = TechnicalIndicators()

    def compute_features(self, df: pd.DataFrame, symbol: str = "") -> FeatureSet:
        """
        Compute indicator columns for an OHLCV frame.

        Args:
            df: DataFrame with at least a ``close`` column; ``volume`` optional
            symbol: Symbol name for reference

        Returns:
            FeatureSet whose frame adds pct_change and every indicator column
        """
        features = df.copy()
        close = features['close']
        volume = features['volume'].fillna(0) if 'volume' in features.columns \
            else pd.Series(0.0, index=features.index)

        columns: Dict[str, pd.Series] = {
            'pct_change': self.technical.pct_change(close),
            'ma20': self.technical.moving_average(close, self.config.ma_short),
            'ma50': self.technical.moving_average(close, self.config.ma_medium),
            'ma200': self.technical.moving_average(close, self.config.ma_long),
            'rsi14': self.technical.rsi(close, self.config.rsi_period),
            'volume_ma20': self.technical.moving_average(volume, self.config.volume_ma_period),
            'bollinger_band_width20': self.technical.bollinger_band_width(
                close,
                self.config.bollinger_period,
                self.config.bollinger_std
            )
        }
        for name, series in columns.items():
            features[name] = series.to_numpy()

        logger.info(f"Computed {len(columns)} indicator columns over {len(features)} rows for {symbol}")

        return FeatureSet(
            symbol=symbol,
            features=features,
            feature_names=list(columns),
            timestamp=pd.Timestamp.now()
        )

    def enrich_with_indicators(self, points: List[PricePoint], symbol: str = "") -> List[EnrichedPricePoint]:
        """Attach indicators (and a recomputed pct_change) to every point."""
        if not points:
            return []

        frame = self.compute_features(points_to_frame(points), symbol).features

        enriched = []
        for point, (_, row) in zip(points, frame.iterrows()):
            indicators = IndicatorSet(
                ma20=_defined(row['ma20']),
                ma50=_defined(row['ma50']),
                ma200=_defined(row['ma200']),
                rsi14=_defined(row['rsi14']),
                volume_ma20=_defined(row['volume_ma20']),
                bollinger_band_width20=_defined(row['bollinger_band_width20'])
            )
            updated = PricePoint(
                date=point.date,
                close=point.close,
                open=point.open,
                high=point.high,
                low=point.low,
                volume=point.volume,
                pct_change=float(row['pct_change'])
            )
            enriched.append(EnrichedPricePoint(point=updated, indicators=indicators))

        return enriched


def enrich_with_indicators(points: List[PricePoint], config=None) -> List[EnrichedPricePoint]:
    """Enrich a raw price series with the default indicator set."""
    return FeatureEngine(config).enrich_with_indicators(points)
