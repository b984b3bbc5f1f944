"""
Data Module
===========
"""
from .data_manager import (
    PricePoint,
    DataSource,
    YFinanceSource,
    MockDataSource,
    DataCache,
    DataManager,
    AnalysisRecord,
    AnalysisRepository,
    InMemoryRepository,
    frame_to_points,
    points_to_frame,
    with_pct_changes
)

__all__ = [
    'PricePoint',
    'DataSource',
    'YFinanceSource',
    'MockDataSource',
    'DataCache',
    'DataManager',
    'AnalysisRecord',
    'AnalysisRepository',
    'InMemoryRepository',
    'frame_to_points',
    'points_to_frame',
    'with_pct_changes'
]
