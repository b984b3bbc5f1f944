"""
Unit tests for historical pattern matching
"""

from datetime import date, timedelta
from types import SimpleNamespace

import pytest

from quant_research.alpha import Factor, FactorState
from quant_research.ml import (
    HistoricalPatternMatch,
    PatternMatcher,
    find_historical_patterns,
    pattern_return
)

A = Factor.VOLUME_SPIKE
B = Factor.BREAK_MA50
C = Factor.MARKET_UP
D = Factor.NEWS_POSITIVE


def _history(active_sets, returns=None):
    start = date(2024, 1, 1)
    returns = returns or [1.0] * len(active_sets)
    states = [
        FactorState.from_active(active, start + timedelta(days=i))
        for i, active in enumerate(active_sets)
    ]
    series = [SimpleNamespace(pct_change=r) for r in returns]
    return states, series


class TestPatternMatcher:
    """Test similarity matching"""

    def test_overlap_similarity(self):
        """{A,B} vs {A,B,C} matches at 2/3; {C,D} does not match"""
        states, series = _history([[A, B, C], [C, D]], returns=[4.2, -1.0])
        matches = find_historical_patterns(FactorState.from_active([A, B]), states, series)

        assert len(matches) == 1
        assert matches[0].similarity == pytest.approx(2 / 3)
        assert matches[0].actual_return == 4.2
        assert set(matches[0].factors) == {A, B, C}
        assert matches[0].date == date(2024, 1, 1)

    def test_empty_current_state(self):
        """No active factors means no matches"""
        states, series = _history([[], [A]])
        assert find_historical_patterns(FactorState.from_flags({}), states, series) == []

    def test_threshold_inclusive(self):
        """Similarity of exactly 0.5 is kept"""
        states, series = _history([[A]])
        matches = find_historical_patterns(FactorState.from_active([A, B]), states, series)

        assert len(matches) == 1
        assert matches[0].similarity == 0.5

    def test_sorted_and_truncated(self):
        """Matches are ordered by similarity and capped at ten"""
        active_sets = [[A]] * 8 + [[A, B]] * 8
        states, series = _history(active_sets)
        matches = find_historical_patterns(FactorState.from_active([A, B]), states, series)

        assert len(matches) == 10
        assert [m.similarity for m in matches[:8]] == [1.0] * 8
        assert all(m.similarity == 0.5 for m in matches[8:])

    def test_ties_keep_date_order(self):
        """Equal similarities stay in chronological order"""
        states, series = _history([[A, B]] * 3)
        matches = find_historical_patterns(FactorState.from_active([A, B]), states, series)

        dates = [m.date for m in matches]
        assert dates == sorted(dates)

    def test_custom_limits(self):
        """Threshold and cap are configurable"""
        states, series = _history([[A, B, C]] * 5)
        matcher = PatternMatcher(threshold=0.7, max_matches=2)

        assert matcher.find(FactorState.from_active([A, B]), states, series) == []
        assert len(PatternMatcher(threshold=0.5, max_matches=2).find(
            FactorState.from_active([A, B]), states, series)) == 2

    def test_to_dict(self):
        """Records round the similarity for display"""
        match = HistoricalPatternMatch(date(2024, 1, 2), 2 / 3, 1.5, [A, B])
        record = match.to_dict()

        assert record['similarity'] == 0.67
        assert record['factors'] == ['volume_spike', 'break_ma50']
        assert record['date'] == '2024-01-02'


class TestPatternReturn:
    """Test the similarity-weighted return"""

    def test_weighted_mean(self):
        """Returns are weighted by similarity"""
        matches = [
            HistoricalPatternMatch(None, 1.0, 2.0),
            HistoricalPatternMatch(None, 0.5, -2.0),
        ]
        assert pattern_return(matches) == pytest.approx(1.0 / 1.5)

    def test_no_matches(self):
        """No matches contribute zero"""
        assert pattern_return([]) == 0.0
