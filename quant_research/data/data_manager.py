"""
Data Module
===========
Price bars, market-data sources and the persistence collaborator.

Everything here is the imperative edge of the pipeline: sources and
repositories are fetched from once per top-level call, and the resulting
in-memory snapshot is handed to the pure computation modules.
"""

import pandas as pd
import numpy as np
import yfinance as yf
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional
import logging
import math
import threading

from ..exceptions import ExternalFetchError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PricePoint:
    """One daily bar. ``pct_change`` is relative to the previous close."""
    date: date
    close: float
    open: Optional[float] = None
    high: Optional[float] = None
    low: Optional[float] = None
    volume: Optional[float] = None
    pct_change: float = 0.0

    def to_dict(self) -> dict:
        return {
            'date': self.date.isoformat(),
            'open': self.open,
            'high': self.high,
            'low': self.low,
            'close': self.close,
            'volume': self.volume,
            'pct_change': self.pct_change
        }


def _optional(value) -> Optional[float]:
    if value is None:
        return None
    value = float(value)
    return None if math.isnan(value) else value


def frame_to_points(df: pd.DataFrame) -> List[PricePoint]:
    """Convert an OHLCV frame indexed by date into price points."""
    points = []
    for idx, row in df.iterrows():
        points.append(PricePoint(
            date=pd.Timestamp(idx).date(),
            close=float(row['close']),
            open=_optional(row.get('open')),
            high=_optional(row.get('high')),
            low=_optional(row.get('low')),
            volume=_optional(row.get('volume')),
            pct_change=_optional(row.get('pct_change')) or 0.0
        ))
    return points


def points_to_frame(points: List[PricePoint]) -> pd.DataFrame:
    """Convert price points into an OHLCV frame indexed by date."""
    columns = ['open', 'high', 'low', 'close', 'volume', 'pct_change']
    if not points:
        return pd.DataFrame(columns=columns, dtype=float)

    df = pd.DataFrame(
        [{c: getattr(p, c) for c in columns} for p in points],
        index=pd.DatetimeIndex([pd.Timestamp(p.date) for p in points], name='date'),
        dtype=float
    )
    return df


def with_pct_changes(points: List[PricePoint], decimals: Optional[int] = None) -> List[PricePoint]:
    """Recompute close-to-close percentage change for every point."""
    result = []
    for i, point in enumerate(points):
        change = 0.0
        if i > 0:
            prev_close = points[i - 1].close
            if prev_close and math.isfinite(prev_close):
                change = (point.close - prev_close) / prev_close * 100
        if decimals is not None:
            change = round(change, decimals)
        result.append(replace(point, pct_change=change))
    return result


class DataSource(ABC):
    """Abstract base class for market-data sources."""

    @abstractmethod
    def fetch_ohlcv(self, symbol: str, market: str, start: datetime, end: datetime) -> pd.DataFrame:
        """Fetch daily OHLCV data for a symbol on a market."""
        pass

    @abstractmethod
    def fetch_quote(self, symbol: str, market: str) -> float:
        """Fetch the latest traded price."""
        pass


class YFinanceSource(DataSource):
    """Yahoo Finance data source."""

    def fetch_ohlcv(self, symbol: str, market: str, start: datetime, end: datetime) -> pd.DataFrame:
        """Fetch OHLCV data from Yahoo Finance."""
        ticker = yf.Ticker(self._convert_symbol(symbol, market))
        df = ticker.history(start=start, end=end, interval='1d')

        if df.empty:
            raise ValueError(f"No data returned for {symbol} on market {market}")

        # Standardize column names
        df = df.rename(columns={
            'Open': 'open',
            'High': 'high',
            'Low': 'low',
            'Close': 'close',
            'Volume': 'volume'
        })
        df.index = pd.DatetimeIndex(df.index).tz_localize(None).normalize()
        return df[['open', 'high', 'low', 'close', 'volume']]

    def fetch_quote(self, symbol: str, market: str) -> float:
        """Fetch latest price."""
        ticker = yf.Ticker(self._convert_symbol(symbol, market))
        info = ticker.info
        price = info.get('currentPrice', info.get('regularMarketPrice'))
        if not price:
            raise ValueError(f"No quote available for {symbol} on market {market}")
        return float(price)

    def _convert_symbol(self, symbol: str, market: str) -> str:
        """Convert symbol to Yahoo Finance format."""
        symbol = symbol.strip().upper()

        if symbol.startswith('^') or '.' in symbol:
            return symbol

        # Vietnamese listings carry the .VN suffix on Yahoo
        if market == 'VN':
            return f"{symbol}.VN"

        return symbol


class MockDataSource(DataSource):
    """Synthetic data source for tests and offline runs."""

    def __init__(self, volatility: float = 0.02, seed: int = 42):
        self.volatility = volatility
        self.seed = seed
        self.base_prices = {
            'AAPL': 190,
            'MSFT': 410,
            'VPB': 19,
            'FPT': 120
        }

    def fetch_ohlcv(self, symbol: str, market: str, start: datetime, end: datetime) -> pd.DataFrame:
        """Generate a random-walk OHLCV frame over business days."""
        dates = pd.bdate_range(start=start, end=end)
        rng = np.random.default_rng(self.seed)

        base_price = self.base_prices.get(symbol, 100)

        n = len(dates)
        returns = rng.normal(0.0005, self.volatility, n)
        closes = base_price * np.cumprod(1 + returns)

        data = []
        for close in closes:
            daily_vol = self.volatility * close
            high = close + abs(rng.normal(0, daily_vol))
            low = close - abs(rng.normal(0, daily_vol))
            open_price = low + rng.random() * (high - low)
            volume = int(rng.normal(1000000, 200000))

            data.append({
                'open': round(open_price, 2),
                'high': round(high, 2),
                'low': round(low, 2),
                'close': round(close, 2),
                'volume': max(volume, 100000)
            })

        return pd.DataFrame(data, index=dates)

    def fetch_quote(self, symbol: str, market: str) -> float:
        return float(self.base_prices.get(symbol, 100))


class DataCache:
    """Thread-safe in-memory cache with per-entry expiry."""

    def __init__(self):
        self._cache: Dict[str, tuple] = {}
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None
            data, expires_at = entry
            if datetime.now() > expires_at:
                del self._cache[key]
                return None
            return data

    def set(self, key: str, data: Any, ttl_seconds: int = 60):
        with self._lock:
            self._cache[key] = (data, datetime.now() + timedelta(seconds=ttl_seconds))

    def clear(self):
        with self._lock:
            self._cache.clear()


@dataclass
class AnalysisRecord:
    """A stored stock analysis: one symbol's ingested price history."""
    id: int
    symbol: str
    market: Optional[str] = None
    min_pct_change: float = 4.0
    updated_at: datetime = field(default_factory=datetime.now)


class AnalysisRepository(ABC):
    """Persistence collaborator for analyses, price bars and score tables."""

    @abstractmethod
    def get_analysis(self, analysis_id: int) -> Optional[AnalysisRecord]:
        pass

    @abstractmethod
    def find_latest_analysis(self, symbol: str, market: Optional[str] = None) -> Optional[AnalysisRecord]:
        pass

    @abstractmethod
    def get_price_bars(self, analysis_id: int, skip: int = 0,
                       limit: Optional[int] = None) -> List[PricePoint]:
        """Bars ordered by date ascending; ``limit=None`` returns the rest."""
        pass

    @abstractmethod
    def count_price_bars(self, analysis_id: int) -> int:
        pass

    @abstractmethod
    def upsert_price_bars(self, analysis_id: int, points: List[PricePoint]) -> int:
        pass

    @abstractmethod
    def save_scores(self, analysis_id: int, scores: List[Any]):
        pass

    @abstractmethod
    def get_scores(self, analysis_id: int) -> List[Any]:
        pass


class InMemoryRepository(AnalysisRepository):
    """Dictionary-backed repository."""

    def __init__(self):
        self._analyses: Dict[int, AnalysisRecord] = {}
        self._bars: Dict[int, Dict[date, PricePoint]] = {}
        self._scores: Dict[int, List[Any]] = {}
        self._lock = threading.RLock()

    def create_analysis(self, symbol: str, market: Optional[str] = None,
                        min_pct_change: float = 4.0) -> AnalysisRecord:
        with self._lock:
            analysis_id = max(self._analyses, default=0) + 1
            record = AnalysisRecord(
                id=analysis_id,
                symbol=symbol.upper(),
                market=market,
                min_pct_change=min_pct_change
            )
            self._analyses[analysis_id] = record
            self._bars[analysis_id] = {}
            return record

    def get_analysis(self, analysis_id: int) -> Optional[AnalysisRecord]:
        with self._lock:
            return self._analyses.get(analysis_id)

    def find_latest_analysis(self, symbol: str, market: Optional[str] = None) -> Optional[AnalysisRecord]:
        with self._lock:
            candidates = [
                a for a in self._analyses.values()
                if a.symbol == symbol.upper() and (market is None or a.market == market)
            ]
        if not candidates:
            return None
        return max(candidates, key=lambda a: a.updated_at)

    def get_price_bars(self, analysis_id: int, skip: int = 0,
                       limit: Optional[int] = None) -> List[PricePoint]:
        with self._lock:
            bars = self._bars.get(analysis_id, {})
            ordered = [bars[d] for d in sorted(bars)]
        end = None if limit is None else skip + limit
        return ordered[skip:end]

    def count_price_bars(self, analysis_id: int) -> int:
        with self._lock:
            return len(self._bars.get(analysis_id, {}))

    def upsert_price_bars(self, analysis_id: int, points: List[PricePoint]) -> int:
        with self._lock:
            if analysis_id not in self._analyses:
                raise KeyError(f"Stock analysis {analysis_id} not found")
            bars = self._bars.setdefault(analysis_id, {})
            for point in points:
                bars[point.date] = point
            self._analyses[analysis_id].updated_at = datetime.now()
        return len(points)

    def save_scores(self, analysis_id: int, scores: List[Any]):
        with self._lock:
            self._scores[analysis_id] = list(scores)

    def get_scores(self, analysis_id: int) -> List[Any]:
        with self._lock:
            return list(self._scores.get(analysis_id, []))


class DataManager:
    """
    Market-data manager.

    Responsibilities:
    - Fetch history with a single fallback to the alternate market code
    - Cache fetched frames
    - Validate and clean bars
    """

    def __init__(self, config=None, source: Optional[DataSource] = None):
        from ..config import DataConfig
        self.config = config or DataConfig()

        if source is not None:
            self.source = source
        elif self.config.use_mock:
            self.source = MockDataSource()
        else:
            self.source = YFinanceSource()

        self.cache = DataCache()

    def _alternate_market(self, market: str) -> str:
        if market == self.config.fallback_market:
            return self.config.default_market
        return self.config.fallback_market

    def load_history(self, symbol: str, market: Optional[str] = None,
                     start: Optional[datetime] = None,
                     end: Optional[datetime] = None) -> List[PricePoint]:
        """
        Load daily bars for a symbol.

        Tries the requested market first and the alternate market once.
        Raises ExternalFetchError if both fail.
        """
        market = market or self.config.default_market
        end = end or datetime.now()
        start = start or end - timedelta(days=self.config.lookback_days)

        cache_key = f"{symbol}_{market}_{start:%Y%m%d}_{end:%Y%m%d}"
        if self.config.use_cache:
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.debug(f"Cache hit for {symbol}")
                return cached

        try:
            df = self.source.fetch_ohlcv(symbol, market, start, end)
            logger.info(f"Fetched {len(df)} rows for {symbol} ({market})")
        except Exception as e:
            alternate = self._alternate_market(market)
            logger.warning(f"Fetch failed for {symbol} on {market}: {e}; retrying on {alternate}")
            try:
                df = self.source.fetch_ohlcv(symbol, alternate, start, end)
                logger.info(f"Fetched {len(df)} rows for {symbol} ({alternate})")
            except Exception as e2:
                logger.error(f"All markets failed for {symbol}: {e2}")
                raise ExternalFetchError(
                    f"Failed to fetch historical data for {symbol}: {e2}"
                ) from e2

        points = with_pct_changes(frame_to_points(self._clean_data(df)))

        if self.config.use_cache:
            self.cache.set(cache_key, points, self.config.cache_ttl_seconds)

        return points

    def get_current_price(self, symbol: str, market: Optional[str] = None) -> Optional[float]:
        """Latest price, or None when every market lookup fails."""
        market = market or self.config.default_market
        for code in (market, self._alternate_market(market)):
            try:
                return self.source.fetch_quote(symbol, code)
            except Exception as e:
                logger.warning(f"Quote lookup failed for {symbol} on {code}: {e}")
        return None

    def _clean_data(self, df: pd.DataFrame) -> pd.DataFrame:
        """Clean and validate market data."""
        # Remove duplicates
        df = df[~df.index.duplicated(keep='last')]

        # Sort by date
        df = df.sort_index()

        # Remove rows with missing, zero or negative closes
        df = df[df['close'].notna() & (df['close'] > 0)]

        return df
