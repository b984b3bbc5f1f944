"""
Unit tests for the factor classifier
"""

from datetime import date

import pytest

from quant_research.data import PricePoint
from quant_research.features import EnrichedPricePoint, IndicatorSet
from quant_research.alpha import (
    Factor,
    FactorState,
    FactorClassifier,
    MarketContext,
    FACTOR_DESCRIPTIONS,
    classify_factors
)


DAY = date(2024, 3, 1)


def _day(close=110.0, volume=3_000_000.0, day=DAY, **indicators):
    defaults = dict(ma50=100.0, ma200=120.0, rsi14=65.0, volume_ma20=1_000_000.0)
    defaults.update(indicators)
    return EnrichedPricePoint(
        point=PricePoint(date=day, close=close, volume=volume),
        indicators=IndicatorSet(**defaults)
    )


class TestFactorClassifier:
    """Test per-day factor evaluation"""

    def test_technical_factors(self):
        """Volume, MA and RSI factors follow the reference thresholds"""
        state = FactorClassifier().classify(_day())

        assert state.is_active(Factor.VOLUME_SPIKE), "3M vs 1M average is a spike"
        assert state.is_active(Factor.BREAK_MA50)
        assert not state.is_active(Factor.BREAK_MA200), "110 is below MA200 of 120"
        assert state.is_active(Factor.RSI_OVER_60)

    def test_every_key_present(self):
        """States are always complete"""
        state = FactorClassifier().classify(_day())

        assert set(state.flags) == set(Factor)
        assert all(isinstance(v, bool) for v in state.flags.values())

    def test_missing_context_is_inactive(self):
        """Context factors without context are inactive, never errors"""
        state = FactorClassifier().classify(_day())

        for factor in [Factor.MARKET_UP, Factor.SECTOR_UP, Factor.EARNINGS_WINDOW,
                       Factor.NEWS_POSITIVE, Factor.SHORT_COVERING, Factor.MACRO_TAILWIND]:
            assert not state.is_active(factor)

    def test_missing_indicators_are_inactive(self):
        """Unfilled windows never activate a factor"""
        day = _day(ma50=None, ma200=None, rsi14=None, volume_ma20=None)
        state = FactorClassifier().classify(day)

        assert state.factor_count == 0

    def test_volume_spike_boundary(self):
        """Volume must exceed, not equal, 1.5x the average"""
        state = FactorClassifier().classify(_day(volume=1_500_000.0))
        assert not state.is_active(Factor.VOLUME_SPIKE)

    def test_market_and_sector(self):
        """Same-date index returns drive market_up and sector_up"""
        context = MarketContext(
            market_returns={DAY: 0.8},
            sector_returns={DAY: -0.3}
        )
        state = FactorClassifier().classify(_day(), context=context)

        assert state.is_active(Factor.MARKET_UP)
        assert not state.is_active(Factor.SECTOR_UP)

    def test_earnings_window(self):
        """Earnings within the configured window activate the factor"""
        classifier = FactorClassifier()

        near = MarketContext(earnings_dates=[date(2024, 3, 4)])
        far = MarketContext(earnings_dates=[date(2024, 3, 10)])

        assert classifier.classify(_day(), context=near).is_active(Factor.EARNINGS_WINDOW)
        assert not classifier.classify(_day(), context=far).is_active(Factor.EARNINGS_WINDOW)

    def test_news_and_macro(self):
        """Sentiment labels and macro events are read by date"""
        context = MarketContext(
            news_sentiment={DAY: 'positive'},
            macro_events={DAY: True}
        )
        state = FactorClassifier().classify(_day(), context=context)

        assert state.is_active(Factor.NEWS_POSITIVE)
        assert state.is_active(Factor.MACRO_TAILWIND)

    def test_short_covering(self):
        """High short interest on a rising day signals covering"""
        classifier = FactorClassifier()
        context = MarketContext(short_interest=0.25)
        previous = _day(close=100.0, day=date(2024, 2, 29))

        assert classifier.classify(_day(close=110.0), previous, context).is_active(Factor.SHORT_COVERING)
        assert not classifier.classify(_day(close=95.0), previous, context).is_active(Factor.SHORT_COVERING)
        assert not classifier.classify(_day(), None, context).is_active(Factor.SHORT_COVERING)

    def test_short_covering_explicit_dates(self):
        """Explicit covering dates activate the factor directly"""
        context = MarketContext(short_covering_dates={DAY})
        state = FactorClassifier().classify(_day(), context=context)
        assert state.is_active(Factor.SHORT_COVERING)

    def test_context_from_records(self):
        """Plain records with string dates build a context"""
        context = MarketContext.from_records(
            market_data=[{'date': '2024-03-01', 'pct_change': 1.2}],
            news_data=[{'date': '2024-03-01', 'sentiment': 'POSITIVE'}],
            earnings_dates=['2024-03-02'],
            macro_events=[{'date': '2024-03-01', 'favorable': True}]
        )
        state = FactorClassifier().classify(_day(), context=context)

        assert state.is_active(Factor.MARKET_UP)
        assert state.is_active(Factor.NEWS_POSITIVE)
        assert state.is_active(Factor.EARNINGS_WINDOW)
        assert state.is_active(Factor.MACRO_TAILWIND)

    def test_classify_series(self, enriched_trending):
        """Every day of a series is classified in order"""
        states = classify_factors(enriched_trending)

        assert len(states) == len(enriched_trending)
        assert states[0].date == enriched_trending[0].date
        assert not states[0].is_active(Factor.BREAK_MA200)
        assert any(s.is_active(Factor.VOLUME_SPIKE) for s in states)


class TestFactorState:
    """Test factor state construction"""

    def test_from_flags_ignores_unknown(self):
        """Unknown keys are dropped, string keys accepted"""
        state = FactorState.from_flags({'volume_spike': True, 'moon_phase': True, 'break_ma50': False})

        assert state.active_factors == [Factor.VOLUME_SPIKE]
        assert len(state.flags) == len(Factor)

    def test_from_active(self):
        """Active lists become complete states"""
        state = FactorState.from_active([Factor.MARKET_UP, 'news_positive'], DAY)

        assert state.active_set == {Factor.MARKET_UP, Factor.NEWS_POSITIVE}
        assert state.date == DAY

    def test_to_dict(self):
        """Records list every factor by its string value"""
        record = FactorState.from_active([Factor.RSI_OVER_60], DAY).to_dict()

        assert record['date'] == '2024-03-01'
        assert record['factors']['rsi_over_60'] is True
        assert record['factors']['volume_spike'] is False
        assert record['factor_list'] == ['rsi_over_60']
        assert record['factor_count'] == 1

    def test_descriptions_cover_all_factors(self):
        """Every factor has a name, category and description"""
        for factor in Factor:
            info = FACTOR_DESCRIPTIONS[factor]
            assert info['name'] and info['description']
            assert info['category'] in {'technical', 'market', 'fundamental', 'sentiment'}

    def test_parse(self):
        """Factor.parse resolves members and values, None otherwise"""
        assert Factor.parse('break_ma200') is Factor.BREAK_MA200
        assert Factor.parse(Factor.SECTOR_UP) is Factor.SECTOR_UP
        assert Factor.parse('unknown') is None
