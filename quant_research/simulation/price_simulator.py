"""
Price-Path Simulator
====================
Projects a forward price path from a static factor state.

Each simulated day compounds a blended percentage change made of three
estimates:

1. Score method: the day's score scaled by the historical return per
   score unit, damped when the score is below threshold
2. Factor method: weight times historical average return, summed over the
   active factors
3. Pattern method: similarity-weighted return of matching historical days

The base path is then rescaled into optimistic, pessimistic and base
scenarios, and the spread of their final prices gives the confidence
intervals.
"""

import pandas as pd
import numpy as np
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from typing import Dict, List, Mapping, Optional, Sequence
import logging
import math

from ..alpha.factor_classifier import Factor, FactorState
from ..alpha.scoring import ScoringEngine
from ..ml.correlation import CorrelationTable, correlate_factors
from ..ml.pattern_matcher import HistoricalPatternMatch, PatternMatcher, pattern_return
from ..exceptions import InvalidParameterError

logger = logging.getLogger(__name__)


@dataclass
class SimulationParameters:
    """Inputs for one simulation run."""
    symbol: str
    initial_price: float
    time_horizon: int
    factor_weights: Optional[Dict[str, float]] = None
    threshold: Optional[float] = None
    factor_states: Mapping = field(default_factory=dict)
    stock_analysis_id: Optional[int] = None
    start_date: Optional[date] = None

    def validate(self):
        if not self.symbol:
            raise InvalidParameterError("symbol is required")
        if (isinstance(self.initial_price, bool)
                or not isinstance(self.initial_price, (int, float))
                or not math.isfinite(self.initial_price)
                or self.initial_price <= 0):
            raise InvalidParameterError(
                f"initial_price must be a positive number, got {self.initial_price!r}"
            )
        if (isinstance(self.time_horizon, bool)
                or not isinstance(self.time_horizon, int)
                or self.time_horizon <= 0):
            raise InvalidParameterError(
                f"time_horizon must be a positive integer, got {self.time_horizon!r}"
            )

    def to_dict(self) -> dict:
        return {
            'symbol': self.symbol,
            'initial_price': self.initial_price,
            'time_horizon': self.time_horizon,
            'factor_weights': {getattr(k, 'value', k): v for k, v in (self.factor_weights or {}).items()},
            'threshold': self.threshold,
            'factor_states': {getattr(k, 'value', k): bool(v) for k, v in self.factor_states.items()},
            'stock_analysis_id': self.stock_analysis_id,
            'start_date': self.start_date.isoformat() if self.start_date else None
        }


@dataclass
class PricePathPoint:
    """One simulated trading day."""
    day: int
    date: date
    predicted_price: float
    price_change: float
    price_change_percent: float
    score: float
    active_factors: List[Factor]
    confidence: float

    def to_dict(self) -> dict:
        return {
            'day': self.day,
            'date': self.date.isoformat(),
            'predicted_price': self.predicted_price,
            'price_change': self.price_change,
            'price_change_percent': self.price_change_percent,
            'score': self.score,
            'active_factors': [f.value for f in self.active_factors],
            'confidence': self.confidence
        }


@dataclass
class SimulationScenario:
    """A rescaled copy of the base path."""
    type: str
    price_path: List[PricePathPoint]
    final_price: float
    total_return: float
    total_return_percent: float
    probability: float

    def to_dict(self) -> dict:
        return {
            'type': self.type,
            'price_path': [p.to_dict() for p in self.price_path],
            'final_price': self.final_price,
            'total_return': self.total_return,
            'total_return_percent': self.total_return_percent,
            'probability': self.probability
        }


@dataclass
class ConfidenceInterval:
    confidence_level: float
    lower_bound: float
    upper_bound: float

    def to_dict(self) -> dict:
        return {
            'confidence_level': self.confidence_level,
            'lower_bound': self.lower_bound,
            'upper_bound': self.upper_bound
        }


@dataclass
class FactorBreakdown:
    """A factor's share of the factor-method change."""
    factor: Factor
    contribution: float
    weight: float
    active: bool
    historical_avg_return: float

    def to_dict(self) -> dict:
        return {
            'factor': self.factor.value,
            'contribution': self.contribution,
            'weight': self.weight,
            'active': self.active,
            'historical_avg_return': self.historical_avg_return
        }


@dataclass
class SimulationResult:
    symbol: str
    initial_price: float
    time_horizon: int
    base_case: List[PricePathPoint]
    scenarios: List[SimulationScenario]
    confidence_intervals: List[ConfidenceInterval]
    factor_breakdown: List[FactorBreakdown]
    historical_pattern_matches: List[HistoricalPatternMatch]
    parameters: SimulationParameters
    generated_at: datetime = field(default_factory=datetime.now)
    calculation_method: str = 'hybrid'

    def scenario(self, scenario_type: str) -> Optional[SimulationScenario]:
        for s in self.scenarios:
            if s.type == scenario_type:
                return s
        return None

    def to_dict(self) -> dict:
        return {
            'symbol': self.symbol,
            'initial_price': self.initial_price,
            'time_horizon': self.time_horizon,
            'base_case': [p.to_dict() for p in self.base_case],
            'scenarios': [s.to_dict() for s in self.scenarios],
            'confidence_intervals': [c.to_dict() for c in self.confidence_intervals],
            'factor_breakdown': [b.to_dict() for b in self.factor_breakdown],
            'historical_pattern_matches': [m.to_dict() for m in self.historical_pattern_matches],
            'metadata': {
                'parameters': self.parameters.to_dict(),
                'generated_at': self.generated_at.isoformat(),
                'calculation_method': self.calculation_method
            }
        }


def business_days_after(start: date, count: int) -> List[date]:
    """The ``count`` weekdays strictly after ``start``."""
    days = pd.bdate_range(pd.Timestamp(start) + timedelta(days=1), periods=count)
    return [d.date() for d in days]


class PriceSimulator:
    """Hybrid score/factor/pattern price-path simulator."""

    def __init__(self, config=None, score_config=None, analyzer_config=None):
        from ..config import SimulationConfig, ScoreConfig, AnalyzerConfig
        self.config = config or SimulationConfig()
        self.score_config = score_config or ScoreConfig()
        self.analyzer_config = analyzer_config or AnalyzerConfig()

    def simulate(self, params: SimulationParameters,
                 states: Optional[List[FactorState]] = None,
                 series: Optional[Sequence] = None) -> SimulationResult:
        """
        Run a simulation.

        Args:
            params: simulation inputs
            states: historical factor states, or None when no history exists
            series: price points aligned with ``states`` (``pct_change`` is read)

        Raises:
            InvalidParameterError: bad price or horizon
            InsufficientDataError: an empty history was supplied
        """
        params.validate()

        score_config = self.score_config.merged(params.factor_weights, params.threshold)
        engine = ScoringEngine(score_config)
        state = FactorState.from_flags(params.factor_states)

        correlations: CorrelationTable = {}
        return_per_score = self.config.default_return_per_score
        patterns: List[HistoricalPatternMatch] = []

        if states is not None:
            series = series if series is not None else []
            correlations = correlate_factors(
                states, series, forward_lag=self.analyzer_config.forward_lag
            )
            return_per_score = self._return_per_score(engine, states, series)
            patterns = PatternMatcher(
                self.analyzer_config.similarity_threshold,
                self.analyzer_config.max_pattern_matches
            ).find(state, states, series)

        # The factor state is static, so every day shares one prediction
        prediction = engine.predict(params.symbol, state)
        score = prediction.score

        weights = self.config.method_weights
        combined = (
            weights['prediction_score'] * self._score_change(score, score_config.threshold, return_per_score)
            + weights['factor_based'] * self._factor_change(state, correlations, score_config)
            + weights['historical_patterns'] * pattern_return(patterns)
        )

        start = params.start_date or date.today()
        dates = business_days_after(start, params.time_horizon)
        active = state.active_factors

        base_case = []
        price = float(params.initial_price)
        for day, day_date in enumerate(dates, start=1):
            new_price, change = self._step(price, combined)
            base_case.append(PricePathPoint(
                day=day,
                date=day_date,
                predicted_price=new_price,
                price_change=change,
                price_change_percent=combined,
                score=score,
                active_factors=active,
                confidence=prediction.confidence
            ))
            price = new_price

        scenarios = [
            self._scenario(name, multiplier, base_case, params.initial_price)
            for name, multiplier in self.config.scenario_multipliers.items()
        ]

        logger.info(
            f"Simulated {params.symbol} over {params.time_horizon} days: "
            f"score={score:.2f}, daily change={combined:.4f}%, "
            f"final={base_case[-1].predicted_price:.2f}"
        )

        return SimulationResult(
            symbol=params.symbol,
            initial_price=params.initial_price,
            time_horizon=params.time_horizon,
            base_case=base_case,
            scenarios=scenarios,
            confidence_intervals=self._confidence_intervals(base_case, scenarios, params.initial_price),
            factor_breakdown=self._factor_breakdown(state, correlations, score_config),
            historical_pattern_matches=patterns,
            parameters=params
        )

    def _return_per_score(self, engine: ScoringEngine, states: List[FactorState],
                          series: Sequence) -> float:
        """Mean return over mean score across historical days with a positive score."""
        pairs = []
        for state, point in zip(states, series):
            score = engine.score(state).score
            ret = point.pct_change if point.pct_change is not None else 0.0
            if score > 0 and not np.isnan(score) and not np.isnan(ret):
                pairs.append((score, ret))

        if not pairs:
            return self.config.default_return_per_score

        avg_score = float(np.mean([p[0] for p in pairs]))
        avg_return = float(np.mean([p[1] for p in pairs]))
        if avg_score <= 0:
            return self.config.default_return_per_score
        return avg_return / avg_score

    def _score_change(self, score: float, threshold: float, return_per_score: float) -> float:
        change = score * return_per_score
        if score >= threshold:
            return change
        return change * self.config.below_threshold_damping

    @staticmethod
    def _factor_change(state: FactorState, correlations: CorrelationTable, score_config) -> float:
        total = 0.0
        for factor in state.active_factors:
            entry = correlations.get(factor)
            if entry is not None:
                total += score_config.weight(factor) * entry.avg_return
        return total

    def _step(self, price: float, change_percent: float):
        change = price * (change_percent / 100)
        return max(self.config.price_floor, price + change), change

    def _scenario(self, name: str, multiplier: float, base_case: List[PricePathPoint],
                  initial_price: float) -> SimulationScenario:
        path = []
        price = float(initial_price)
        for point in base_case:
            adjusted = point.price_change_percent * multiplier
            new_price, change = self._step(price, adjusted)
            path.append(replace(
                point,
                predicted_price=new_price,
                price_change=change,
                price_change_percent=adjusted
            ))
            price = new_price

        final_price = path[-1].predicted_price if path else initial_price
        total_return = final_price - initial_price

        return SimulationScenario(
            type=name,
            price_path=path,
            final_price=final_price,
            total_return=total_return,
            total_return_percent=(total_return / initial_price) * 100,
            probability=self.config.scenario_probabilities.get(name, 0.0)
        )

    @staticmethod
    def _confidence_intervals(base_case: List[PricePathPoint], scenarios: List[SimulationScenario],
                              initial_price: float) -> List[ConfidenceInterval]:
        if not base_case:
            return []

        finals = np.array(
            [s.final_price for s in scenarios] + [base_case[-1].predicted_price or initial_price],
            dtype=float
        )
        mean = float(finals.mean())
        std = float(finals.std())

        return [
            ConfidenceInterval(0.68, max(0.0, mean - std), mean + std),
            ConfidenceInterval(0.95, max(0.0, mean - 2 * std), mean + 2 * std),
        ]

    @staticmethod
    def _factor_breakdown(state: FactorState, correlations: CorrelationTable,
                          score_config) -> List[FactorBreakdown]:
        breakdown = []
        for factor in Factor:
            entry = correlations.get(factor)
            weight = score_config.weight(factor)
            active = state.is_active(factor)
            avg_return = entry.avg_return if entry is not None else 0.0
            breakdown.append(FactorBreakdown(
                factor=factor,
                contribution=weight * avg_return if active else 0.0,
                weight=weight,
                active=active,
                historical_avg_return=avg_return
            ))
        return sorted(breakdown, key=lambda b: abs(b.contribution), reverse=True)


def simulate(params: SimulationParameters, states: Optional[List[FactorState]] = None,
             series: Optional[Sequence] = None, config=None) -> SimulationResult:
    """Simulate with a SystemConfig (defaults when omitted)."""
    if config is None:
        return PriceSimulator().simulate(params, states, series)
    return PriceSimulator(config.simulation, config.scoring, config.analyzer).simulate(params, states, series)
