"""
Price Simulation Module
=======================
"""
from .price_simulator import (
    SimulationParameters,
    PricePathPoint,
    SimulationScenario,
    ConfidenceInterval,
    FactorBreakdown,
    SimulationResult,
    PriceSimulator,
    business_days_after,
    simulate
)

__all__ = [
    'SimulationParameters',
    'PricePathPoint',
    'SimulationScenario',
    'ConfidenceInterval',
    'FactorBreakdown',
    'SimulationResult',
    'PriceSimulator',
    'business_days_after',
    'simulate'
]
