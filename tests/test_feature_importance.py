"""
Unit tests for lagged feature importance
"""

import math

import numpy as np
import pytest

from quant_research.config import AnalyzerConfig
from quant_research.exceptions import InsufficientDataError
from quant_research.features import enrich_with_indicators
from quant_research.ml import (
    FEATURE_NAMES,
    FeatureImportanceAnalyzer,
    build_lagged_dataset
)


def _series(make_points, n, with_volume=True, seed=11):
    rng = np.random.default_rng(seed)
    closes = 50 * np.cumprod(1 + rng.normal(0.001, 0.03, n))
    volumes = rng.integers(500_000, 2_000_000, n) if with_volume else None
    return enrich_with_indicators(make_points(closes, volumes))


class TestLaggedDataset:
    """Test dataset construction"""

    def test_thirty_days_leave_ten_rows(self, make_points):
        """Rows start once yesterday's 20-day windows are filled"""
        dataset = build_lagged_dataset(_series(make_points, 30))

        assert len(dataset) == 10
        assert list(dataset.columns) == FEATURE_NAMES + ['target']
        assert not dataset[FEATURE_NAMES].isna().any().any()

    def test_features_are_lagged(self, make_points):
        """Each row carries the previous day's readings"""
        enriched = _series(make_points, 40)
        dataset = build_lagged_dataset(enriched)

        last = dataset.iloc[-1]
        yesterday = enriched[-2]
        assert last['lag_rsi'] == pytest.approx(yesterday.indicators.rsi14)
        assert last['lag_return'] == pytest.approx(yesterday.pct_change)
        assert last['lag_bb_width'] == pytest.approx(yesterday.indicators.bollinger_band_width20)
        assert last['lag_above_sma20'] == float(yesterday.close > yesterday.indicators.ma20)

    def test_missing_volume_drops_rows(self, make_points):
        """Without volume the volume features are undefined and every row is dropped"""
        dataset = build_lagged_dataset(_series(make_points, 40, with_volume=False))
        assert len(dataset) == 0

    def test_target_uses_open(self, make_points):
        """The target compares today's close with today's open"""
        rng = np.random.default_rng(5)
        closes = list(100 * np.cumprod(1 + rng.normal(0.0, 0.01, 30)))
        opens = list(closes)
        opens[-1] = closes[-1] / 1.05
        volumes = [1_000_000] * 30

        dataset = build_lagged_dataset(enrich_with_indicators(make_points(closes, volumes, opens)))

        assert dataset['target'].iloc[-1] == 1
        assert dataset['target'].sum() == 1

    def test_target_falls_back_to_previous_close(self, make_points):
        """Without an open, yesterday's close stands in"""
        closes = [100.0] * 29 + [110.0]
        volumes = [1_000_000] * 30
        dataset = build_lagged_dataset(enrich_with_indicators(make_points(closes, volumes)))

        assert dataset['target'].iloc[-1] == 1
        assert dataset['target'].iloc[:-1].sum() == 0

    def test_short_series(self, make_points):
        """Fewer than two days produce an empty dataset"""
        dataset = build_lagged_dataset(_series(make_points, 1))
        assert len(dataset) == 0


class TestFeatureImportanceAnalyzer:
    """Test the feature-importance ranking"""

    def test_29_days_raise(self, make_points):
        """One day short of the minimum is insufficient"""
        with pytest.raises(InsufficientDataError):
            FeatureImportanceAnalyzer().compute(_series(make_points, 29), "TEST")

    def test_30_days_pass(self, make_points):
        """Exactly the minimum is enough"""
        result = FeatureImportanceAnalyzer().compute(_series(make_points, 30), "TEST")
        assert result.total_days == 10

    def test_too_few_valid_rows_raise(self, make_points):
        """Enough raw days but no valid rows is insufficient"""
        with pytest.raises(InsufficientDataError):
            FeatureImportanceAnalyzer().compute(_series(make_points, 60, with_volume=False), "TEST")

    def test_ranking(self, enriched_trending):
        """Features are sorted by importance, each in [0, 1]"""
        result = FeatureImportanceAnalyzer().compute(enriched_trending, "TEST", market="US", top_n=3)

        importances = [item.importance for item in result.all_features]
        assert importances == sorted(importances, reverse=True)
        assert len(result.all_features) == len(FEATURE_NAMES)
        assert len(result.top_factors) == 3
        assert all(0.0 <= v <= 1.0 for v in importances)
        assert all(item.weight == item.importance for item in result.all_features)
        assert all(item.correlation >= 0 for item in result.all_features)

    def test_importance_blend(self, enriched_trending):
        """Importance blends normalized correlation and information gain 0.6/0.4"""
        result = FeatureImportanceAnalyzer().compute(enriched_trending, "TEST")

        max_corr = max(item.correlation for item in result.all_features)
        max_gain = max(item.information_gain for item in result.all_features)
        for item in result.all_features:
            expected = 0.0
            if max_corr > 0:
                expected += 0.6 * item.correlation / max_corr
            if max_gain > 0:
                expected += 0.4 * item.information_gain / max_gain
            assert item.importance == pytest.approx(expected)

    def test_constant_target_zero_importance(self, make_points):
        """With no strong days nothing is informative"""
        enriched = _series(make_points, 60)
        result = FeatureImportanceAnalyzer().compute(enriched, "TEST", target_pct=10.0)

        assert result.strong_days == 0
        assert all(item.importance == 0.0 for item in result.all_features)

    def test_result_envelope(self, enriched_trending):
        """Statistics and metadata are reported"""
        result = FeatureImportanceAnalyzer().compute(enriched_trending, "TEST", market="US")
        record = result.to_dict()

        assert record['symbol'] == "TEST"
        assert record['target_pct'] == 0.03
        assert record['start_date'] == enriched_trending[0].date.isoformat()
        assert record['end_date'] == enriched_trending[-1].date.isoformat()
        assert record['statistics']['total_days'] == result.total_days
        assert record['model_accuracy']['feature_importance_method'] == 'correlation_and_entropy'
        assert len(record['top_factors']) == min(10, len(FEATURE_NAMES))
        assert math.isclose(
            record['statistics']['strong_days_percentage'],
            result.strong_days / result.total_days * 100
        )

    def test_custom_minimums(self, make_points):
        """Minimum-data guards are configurable"""
        analyzer = FeatureImportanceAnalyzer(AnalyzerConfig(min_raw_days=50))
        with pytest.raises(InsufficientDataError):
            analyzer.compute(_series(make_points, 40), "TEST")
