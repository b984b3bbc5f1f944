"""
Unit tests for configuration
"""

import json

import pytest

from quant_research.alpha import Factor
from quant_research.config import (
    SystemConfig,
    ScoreConfig,
    SimulationConfig,
    AnalyzerConfig
)


class TestScoreConfig:
    """Test score configuration helpers"""

    def test_default_weights(self):
        """Every factor has a default weight"""
        config = ScoreConfig()

        assert set(config.weights) == {f.value for f in Factor}
        assert config.max_score == pytest.approx(1.0)
        assert config.threshold == 0.45
        assert config.min_factors_required == 3

    def test_weight_lookup(self):
        """Weights resolve for enum members and string values"""
        config = ScoreConfig(weights={'volume_spike': 0.3})

        assert config.weight(Factor.VOLUME_SPIKE) == 0.3
        assert config.weight('volume_spike') == 0.3
        assert config.weight(Factor.MARKET_UP) == 0.0

    def test_merged(self):
        """Overrides overlay the existing weights"""
        merged = ScoreConfig().merged({Factor.VOLUME_SPIKE: 0.5, 'news_positive': 0.2}, threshold=0.6)

        assert merged.weight(Factor.VOLUME_SPIKE) == 0.5
        assert merged.weight(Factor.NEWS_POSITIVE) == 0.2
        assert merged.weight(Factor.BREAK_MA50) == 0.15
        assert merged.threshold == 0.6

    def test_merged_does_not_mutate(self):
        """The original configuration is left untouched"""
        original = ScoreConfig()
        original.merged({'volume_spike': 0.9})
        assert original.weight('volume_spike') == 0.25

    def test_moderate_threshold(self):
        assert ScoreConfig(threshold=0.6).moderate_threshold == pytest.approx(0.3)


class TestSystemConfig:
    """Test persistence of the master configuration"""

    def test_save_and_load(self, tmp_path):
        """Configurations survive a JSON round trip"""
        config = SystemConfig()
        config.scoring.threshold = 0.5
        config.scoring.weights['volume_spike'] = 0.4
        config.simulation.price_floor = 0.05
        config.analyzer.top_n = 4
        config.log_level = "DEBUG"

        path = tmp_path / "config" / "research.json"
        config.save(str(path))
        loaded = SystemConfig.load(str(path))

        assert loaded.scoring.threshold == 0.5
        assert loaded.scoring.weights['volume_spike'] == 0.4
        assert loaded.simulation.price_floor == 0.05
        assert loaded.analyzer.top_n == 4
        assert loaded.log_level == "DEBUG"

    def test_partial_file(self, tmp_path):
        """Missing sections keep their defaults"""
        path = tmp_path / "partial.json"
        path.write_text(json.dumps({'analyzer': {'min_raw_days': 60}}))

        loaded = SystemConfig.load(str(path))

        assert loaded.analyzer.min_raw_days == 60
        assert loaded.analyzer.min_valid_rows == AnalyzerConfig().min_valid_rows
        assert loaded.simulation.method_weights == SimulationConfig().method_weights
        assert loaded.log_level == "INFO"

    def test_simulation_defaults(self):
        """Policy constants default to the documented values"""
        config = SimulationConfig()

        assert config.method_weights == {
            'prediction_score': 0.40, 'factor_based': 0.40, 'historical_patterns': 0.20
        }
        assert config.scenario_multipliers == {'optimistic': 1.20, 'pessimistic': 0.80, 'base': 1.00}
        assert config.default_return_per_score == 2.0
        assert config.price_floor == 0.01
