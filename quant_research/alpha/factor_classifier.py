"""
Factor Classifier
=================
Converts an enriched price day plus optional external context into a fixed
set of boolean factor flags.

Each factor is evaluated independently. When the context a factor needs is
missing, the factor is simply inactive; classification never fails on a
well-formed day and always returns every factor key.
"""

import pandas as pd
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Set
import logging

from ..features.feature_engine import EnrichedPricePoint

logger = logging.getLogger(__name__)


class Factor(Enum):
    """Boolean market/technical conditions evaluated per day."""
    VOLUME_SPIKE = "volume_spike"
    BREAK_MA50 = "break_ma50"
    BREAK_MA200 = "break_ma200"
    RSI_OVER_60 = "rsi_over_60"
    MARKET_UP = "market_up"
    SECTOR_UP = "sector_up"
    EARNINGS_WINDOW = "earnings_window"
    NEWS_POSITIVE = "news_positive"
    SHORT_COVERING = "short_covering"
    MACRO_TAILWIND = "macro_tailwind"

    @classmethod
    def parse(cls, value) -> Optional["Factor"]:
        """Factor for an enum member or string value; None if unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value))
        except ValueError:
            return None


FACTOR_DESCRIPTIONS: Dict[Factor, Dict[str, str]] = {
    Factor.VOLUME_SPIKE: {
        'name': 'Volume Spike',
        'category': 'technical',
        'description': 'Volume above 1.5x its 20-day average'
    },
    Factor.BREAK_MA50: {
        'name': 'Above MA50',
        'category': 'technical',
        'description': 'Close above the 50-day moving average'
    },
    Factor.BREAK_MA200: {
        'name': 'Above MA200',
        'category': 'technical',
        'description': 'Close above the 200-day moving average'
    },
    Factor.RSI_OVER_60: {
        'name': 'RSI > 60',
        'category': 'technical',
        'description': '14-day RSI above 60, strong momentum'
    },
    Factor.MARKET_UP: {
        'name': 'Market Up',
        'category': 'market',
        'description': 'Broad market index closed higher the same day'
    },
    Factor.SECTOR_UP: {
        'name': 'Sector Up',
        'category': 'market',
        'description': 'Sector index closed higher the same day'
    },
    Factor.EARNINGS_WINDOW: {
        'name': 'Earnings Window',
        'category': 'fundamental',
        'description': 'Within a few days of an earnings release'
    },
    Factor.NEWS_POSITIVE: {
        'name': 'Positive News',
        'category': 'sentiment',
        'description': 'News sentiment for the day is positive'
    },
    Factor.SHORT_COVERING: {
        'name': 'Short Covering',
        'category': 'sentiment',
        'description': 'Heavily shorted stock rising, forcing shorts to cover'
    },
    Factor.MACRO_TAILWIND: {
        'name': 'Macro Tailwind',
        'category': 'market',
        'description': 'A favorable macro event on the day'
    },
}


@dataclass
class FactorState:
    """Every factor's flag for one day."""
    date: Optional[date]
    flags: Dict[Factor, bool]

    @classmethod
    def from_flags(cls, flags: Optional[Mapping] = None, day: Optional[date] = None) -> "FactorState":
        """
        Build a complete state from a partial mapping.

        Keys may be Factor members or their string values. Missing and
        unknown keys leave the factor inactive.
        """
        complete = {factor: False for factor in Factor}
        for key, value in (flags or {}).items():
            factor = Factor.parse(key)
            if factor is None:
                logger.debug(f"Ignoring unknown factor key: {key}")
                continue
            complete[factor] = bool(value)
        return cls(date=day, flags=complete)

    @classmethod
    def from_active(cls, factors: Iterable, day: Optional[date] = None) -> "FactorState":
        return cls.from_flags({f: True for f in factors}, day)

    @property
    def active_factors(self) -> List[Factor]:
        return [f for f in Factor if self.flags.get(f, False)]

    @property
    def active_set(self) -> Set[Factor]:
        return set(self.active_factors)

    @property
    def factor_count(self) -> int:
        return len(self.active_factors)

    def is_active(self, factor) -> bool:
        factor = Factor.parse(factor)
        return factor is not None and self.flags.get(factor, False)

    def to_dict(self) -> dict:
        return {
            'date': self.date.isoformat() if self.date else None,
            'factors': {f.value: self.flags[f] for f in Factor},
            'factor_count': self.factor_count,
            'factor_list': [f.value for f in self.active_factors]
        }


def _to_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return pd.Timestamp(value).date()


@dataclass
class MarketContext:
    """Optional external context, keyed by calendar date."""
    market_returns: Dict[date, float] = field(default_factory=dict)
    sector_returns: Dict[date, float] = field(default_factory=dict)
    earnings_dates: List[date] = field(default_factory=list)
    news_sentiment: Dict[date, str] = field(default_factory=dict)
    macro_events: Dict[date, bool] = field(default_factory=dict)
    short_interest: Optional[float] = None
    short_covering_dates: Set[date] = field(default_factory=set)

    @classmethod
    def from_records(cls, market_data: Optional[List[dict]] = None,
                     sector_data: Optional[List[dict]] = None,
                     earnings_dates: Optional[List] = None,
                     news_data: Optional[List[dict]] = None,
                     macro_events: Optional[List[dict]] = None,
                     short_interest: Optional[float] = None) -> "MarketContext":
        """
        Build a context from plain records.

        ``market_data``/``sector_data`` rows carry ``date`` and ``pct_change``,
        ``news_data`` rows ``date`` and ``sentiment``, ``macro_events`` rows
        ``date`` and ``favorable``.
        """
        return cls(
            market_returns={_to_date(r['date']): float(r['pct_change']) for r in market_data or []},
            sector_returns={_to_date(r['date']): float(r['pct_change']) for r in sector_data or []},
            earnings_dates=[_to_date(d) for d in earnings_dates or []],
            news_sentiment={_to_date(r['date']): str(r['sentiment']).lower() for r in news_data or []},
            macro_events={_to_date(r['date']): bool(r['favorable']) for r in macro_events or []},
            short_interest=short_interest
        )


class FactorClassifier:
    """Evaluates every factor for a day."""

    def __init__(self, config=None):
        from ..config import FactorConfig
        self.config = config or FactorConfig()

    def classify(self, current: EnrichedPricePoint,
                 previous: Optional[EnrichedPricePoint] = None,
                 context: Optional[MarketContext] = None) -> FactorState:
        """Classify one day given the previous day and optional context."""
        context = context or MarketContext()
        day = current.date
        ind = current.indicators
        close = current.close
        volume = current.point.volume

        flags = {
            Factor.VOLUME_SPIKE: bool(
                volume and ind.volume_ma20
                and volume > self.config.volume_spike_multiplier * ind.volume_ma20
            ),
            Factor.BREAK_MA50: ind.ma50 is not None and close > ind.ma50,
            Factor.BREAK_MA200: ind.ma200 is not None and close > ind.ma200,
            Factor.RSI_OVER_60: ind.rsi14 is not None and ind.rsi14 > self.config.rsi_threshold,
            Factor.MARKET_UP: context.market_returns.get(day, 0) > 0,
            Factor.SECTOR_UP: context.sector_returns.get(day, 0) > 0,
            Factor.EARNINGS_WINDOW: self._in_earnings_window(day, context.earnings_dates),
            Factor.NEWS_POSITIVE: context.news_sentiment.get(day) == 'positive',
            Factor.SHORT_COVERING: self._is_short_covering(current, previous, context),
            Factor.MACRO_TAILWIND: context.macro_events.get(day) is True,
        }

        return FactorState(date=day, flags=flags)

    def classify_series(self, enriched: List[EnrichedPricePoint],
                        context: Optional[MarketContext] = None) -> List[FactorState]:
        """Classify every day of an enriched series."""
        states = []
        for i, current in enumerate(enriched):
            previous = enriched[i - 1] if i > 0 else None
            states.append(self.classify(current, previous, context))

        logger.info(f"Classified {len(states)} days")
        return states

    def _in_earnings_window(self, day: date, earnings_dates: List[date]) -> bool:
        window = self.config.earnings_window_days
        return any(abs((day - e).days) <= window for e in earnings_dates)

    def _is_short_covering(self, current: EnrichedPricePoint,
                           previous: Optional[EnrichedPricePoint],
                           context: MarketContext) -> bool:
        if current.date in context.short_covering_dates:
            return True
        if context.short_interest is None or previous is None:
            return False
        return (context.short_interest >= self.config.short_interest_threshold
                and current.close > previous.close)


def classify_factors(enriched: List[EnrichedPricePoint],
                     context: Optional[MarketContext] = None,
                     config=None) -> List[FactorState]:
    """Classify an enriched series with the default thresholds."""
    return FactorClassifier(config).classify_series(enriched, context)
