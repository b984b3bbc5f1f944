"""
Pytest configuration and fixtures
"""

import pytest
import sys
from pathlib import Path

import numpy as np
import pandas as pd

# Add parent directory to path so we can import the package
parent_dir = Path(__file__).parent.parent
sys.path.insert(0, str(parent_dir))


def _build_points(closes, volumes=None, opens=None, start='2024-01-01'):
    """Business-day PricePoints with percentage changes filled in."""
    from quant_research.data import PricePoint, with_pct_changes

    dates = pd.bdate_range(start=start, periods=len(closes))
    points = []
    for i, close in enumerate(closes):
        points.append(PricePoint(
            date=dates[i].date(),
            close=float(close),
            open=None if opens is None else float(opens[i]),
            volume=None if volumes is None else float(volumes[i])
        ))
    return with_pct_changes(points)


@pytest.fixture
def make_points():
    """Factory for synthetic price series"""
    return _build_points


@pytest.fixture
def flat_points():
    """60 days of a constant 100.0 close"""
    return _build_points([100.0] * 60, volumes=[1_000_000] * 60)


@pytest.fixture
def trending_points():
    """260 days of a noisy uptrend with periodic volume spikes"""
    rng = np.random.default_rng(7)
    n = 260
    closes = 100 * np.cumprod(1 + rng.normal(0.002, 0.02, n))
    opens = closes / (1 + rng.normal(0.0, 0.02, n))
    volumes = rng.integers(800_000, 1_600_000, n)
    volumes[::15] *= 3
    return _build_points(closes, volumes, opens)


@pytest.fixture
def enriched_trending(trending_points):
    """Trending series with indicators attached"""
    from quant_research.features import enrich_with_indicators
    return enrich_with_indicators(trending_points)


@pytest.fixture
def mock_config():
    """SystemConfig wired to the synthetic data source"""
    from quant_research.config import SystemConfig
    config = SystemConfig()
    config.data.use_mock = True
    return config
