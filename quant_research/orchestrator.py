"""
Research Orchestrator
=====================
Imperative shell around the pure research pipeline:
    DATA → INDICATORS → FACTORS → SCORES → ANALYSIS → SIMULATION

Every public call fetches its inputs once (market data or the analysis
repository), hands the in-memory snapshot to the computation modules and,
where relevant, persists the outcome. Collaborator failures that have a usable
fallback are logged and degraded; failures of a sole required input are
raised as typed errors.
"""

import pandas as pd
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Dict, List, Mapping, Optional, Tuple
import logging

from .config import SystemConfig
from .data import (
    DataManager,
    PricePoint,
    AnalysisRecord,
    AnalysisRepository,
    InMemoryRepository,
    with_pct_changes
)
from .features import FeatureEngine, EnrichedPricePoint
from .alpha import (
    FactorClassifier,
    FactorState,
    MarketContext,
    ScoringEngine,
    DailyScore,
    DailyPrediction,
    ScoreSummary
)
from .ml import (
    CorrelationTable,
    FactorSummary,
    FeatureImportanceAnalyzer,
    FeatureImportanceParams,
    FeatureImportanceResult,
    correlate_factors,
    summarize_factors
)
from .simulation import PriceSimulator, SimulationParameters, SimulationResult
from .exceptions import (
    ExternalFetchError,
    InsufficientDataError,
    MissingParameterError
)

logger = logging.getLogger(__name__)


@dataclass
class FactorDay:
    """An enriched day and its factor state."""
    point: EnrichedPricePoint
    state: FactorState

    @property
    def date(self) -> date:
        return self.point.date

    @property
    def pct_change(self) -> float:
        return self.point.pct_change

    def to_dict(self) -> dict:
        state = self.state.to_dict()
        return {
            **self.point.to_dict(),
            **state['factors'],
            'factor_count': state['factor_count'],
            'factor_list': state['factor_list']
        }


@dataclass
class SignificantMove:
    """A day whose close-to-close change cleared the analysis cut-off."""
    number: int
    date: date
    close: float
    pct_change: float

    def to_dict(self) -> dict:
        return {
            'number': self.number,
            'date': self.date.isoformat(),
            'close': self.close,
            'pct_change': self.pct_change
        }


@dataclass
class FactorAnalysisReport:
    """Full factor analysis of one stored analysis."""
    analysis_id: int
    symbol: str
    days: List[FactorDay]
    scores: List[DailyScore]
    factor_summary: FactorSummary
    score_summary: ScoreSummary
    correlations: CorrelationTable
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    generated_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return {
            'analysis_id': self.analysis_id,
            'symbol': self.symbol,
            'period': {
                'start_date': self.start_date.isoformat() if self.start_date else None,
                'end_date': self.end_date.isoformat() if self.end_date else None
            },
            'days': [d.to_dict() for d in self.days],
            'scores': [s.to_dict() for s in self.scores],
            'factor_summary': self.factor_summary.to_dict(),
            'score_summary': self.score_summary.to_dict(),
            'correlations': {f.value: e.to_dict() for f, e in self.correlations.items()},
            'generated_at': self.generated_at.isoformat()
        }


Narrator = Callable[[str], str]


class ResearchService:
    """
    Entry point for every research operation.

    Coordinates:
    1. DATA: market history (DataManager) and stored analyses (repository)
    2. INDICATORS: FeatureEngine
    3. FACTORS/SCORES: FactorClassifier, ScoringEngine
    4. ANALYSIS: correlation and feature importance
    5. SIMULATION: PriceSimulator
    """

    def __init__(self, config: SystemConfig = None,
                 data_manager: Optional[DataManager] = None,
                 repository: Optional[AnalysisRepository] = None,
                 narrator: Optional[Narrator] = None):
        self.config = config or SystemConfig()

        self.data_manager = data_manager or DataManager(config=self.config.data)
        self.repository = repository if repository is not None else InMemoryRepository()
        self.narrator = narrator

        self.feature_engine = FeatureEngine(config=self.config.indicators)
        self.classifier = FactorClassifier(config=self.config.factors)
        self.scoring = ScoringEngine(config=self.config.scoring)
        self.importance = FeatureImportanceAnalyzer(config=self.config.analyzer)
        self.simulator = PriceSimulator(
            config=self.config.simulation,
            score_config=self.config.scoring,
            analyzer_config=self.config.analyzer
        )

        logger.info(f"ResearchService initialized with {type(self.data_manager.source).__name__}")

    # ------------------------------------------------------------------
    # Pure pipeline stages
    # ------------------------------------------------------------------

    def enrich_with_indicators(self, points: List[PricePoint], symbol: str = "") -> List[EnrichedPricePoint]:
        return self.feature_engine.enrich_with_indicators(points, symbol)

    def classify_factors(self, enriched: List[EnrichedPricePoint],
                         context: Optional[MarketContext] = None) -> List[FactorState]:
        return self.classifier.classify_series(enriched, context)

    def score_series(self, states: List[FactorState], config=None) -> List[DailyScore]:
        engine = self.scoring if config is None else ScoringEngine(config)
        return engine.score_series(states)

    def correlate_factors(self, states: List[FactorState], series) -> CorrelationTable:
        return correlate_factors(
            states, series, forward_lag=self.config.analyzer.forward_lag
        )

    # ------------------------------------------------------------------
    # Stored analyses
    # ------------------------------------------------------------------

    def _require_analysis(self, analysis_id: int) -> AnalysisRecord:
        analysis = self.repository.get_analysis(analysis_id)
        if analysis is None:
            raise InsufficientDataError(f"Stock analysis with id {analysis_id} not found")
        return analysis

    def ingest(self, analysis_id: int, points: List[PricePoint]) -> int:
        """Store bars for an analysis with freshly computed percentage changes."""
        self._require_analysis(analysis_id)
        ordered = sorted(points, key=lambda p: p.date)
        count = self.repository.upsert_price_bars(analysis_id, with_pct_changes(ordered, decimals=4))
        logger.info(f"Ingested {count} bars into analysis {analysis_id}")
        return count

    def ingest_from_market(self, analysis_id: int, start: Optional[datetime] = None,
                           end: Optional[datetime] = None) -> int:
        """Fetch an analysis' symbol from the market-data source and store the bars."""
        analysis = self._require_analysis(analysis_id)
        points = self.data_manager.load_history(analysis.symbol, analysis.market, start, end)
        return self.ingest(analysis_id, points)

    def calculate_factors_on_demand(self, analysis_id: int, skip: int = 0,
                                    limit: Optional[int] = None,
                                    context: Optional[MarketContext] = None) -> List[FactorDay]:
        """
        Indicators and factors for stored bars.

        With a ``limit``, only that page is returned, but up to
        ``lookback_rows`` earlier bars are loaded first so long-window
        indicators on the page are accurate. ``limit`` of None or 0 returns
        every stored day.
        """
        if not limit:
            raw = self.repository.get_price_bars(analysis_id)
            lookback = 0
        else:
            effective_skip = max(0, skip - self.config.analyzer.lookback_rows)
            lookback = skip - effective_skip
            raw = self.repository.get_price_bars(analysis_id, effective_skip, limit + lookback)

        if not raw:
            return []

        enriched = self.enrich_with_indicators(raw)
        states = self.classify_factors(enriched, context)
        days = [FactorDay(point=p, state=s) for p, s in zip(enriched, states)]

        if not limit:
            return days
        return days[lookback:lookback + limit]

    def calculate_scores_on_demand(self, analysis_id: int, skip: int = 0,
                                   limit: Optional[int] = None) -> List[DailyScore]:
        days = self.calculate_factors_on_demand(analysis_id, skip, limit)
        return self.score_series([d.state for d in days])

    def analyze(self, analysis_id: int, start_date: Optional[date] = None,
                end_date: Optional[date] = None,
                context: Optional[MarketContext] = None) -> FactorAnalysisReport:
        """
        Factor, score and correlation analysis of a stored analysis.

        Indicators are computed over the full stored history; the optional
        period then restricts which days are summarized. Scores are persisted
        back to the repository.
        """
        analysis = self._require_analysis(analysis_id)
        days = self.calculate_factors_on_demand(analysis_id, context=context)
        if not days:
            raise InsufficientDataError(
                f"No price data stored for {analysis.symbol} (analysis {analysis_id})"
            )

        if start_date is not None or end_date is not None:
            logger.info(f"Applying period filter: {start_date} to {end_date}")
            days = [
                d for d in days
                if (start_date is None or d.date >= start_date)
                and (end_date is None or d.date <= end_date)
            ]

        states = [d.state for d in days]
        scores = self.score_series(states)
        self.repository.save_scores(analysis_id, scores)

        report = FactorAnalysisReport(
            analysis_id=analysis_id,
            symbol=analysis.symbol,
            days=days,
            scores=scores,
            factor_summary=summarize_factors(states),
            score_summary=self.scoring.summarize(scores),
            correlations=self.correlate_factors(states, days),
            start_date=start_date,
            end_date=end_date
        )

        logger.info(
            f"Analyzed {analysis.symbol}: {len(days)} days, "
            f"{report.score_summary.high_score_days} above threshold"
        )
        return report

    def significant_moves(self, analysis_id: int,
                          min_pct_change: Optional[float] = None) -> List[SignificantMove]:
        """Days whose change reaches the analysis' cut-off, numbered from 1."""
        analysis = self._require_analysis(analysis_id)
        cutoff = analysis.min_pct_change if min_pct_change is None else min_pct_change

        points = with_pct_changes(self.repository.get_price_bars(analysis_id))
        moves = []
        for point in points:
            if point.pct_change >= cutoff:
                moves.append(SignificantMove(
                    number=len(moves) + 1,
                    date=point.date,
                    close=point.close,
                    pct_change=point.pct_change
                ))
        return moves

    # ------------------------------------------------------------------
    # Predictions
    # ------------------------------------------------------------------

    def generate_daily_prediction(self, symbol: str, factor_states: Mapping,
                                  weights: Optional[Dict[str, float]] = None,
                                  threshold: Optional[float] = None,
                                  as_of: Optional[date] = None) -> DailyPrediction:
        """Prediction for a caller-supplied factor state."""
        engine = self.scoring
        if weights is not None or threshold is not None:
            engine = ScoringEngine(self.config.scoring.merged(weights, threshold))
        state = FactorState.from_flags(factor_states, as_of)
        return engine.predict(symbol, state, as_of)

    def get_current_price(self, symbol: str, market: Optional[str] = None) -> Optional[float]:
        return self.data_manager.get_current_price(symbol, market)

    # ------------------------------------------------------------------
    # Feature importance
    # ------------------------------------------------------------------

    def fetch_price_history(self, symbol: Optional[str] = None, market: Optional[str] = None,
                            start_date: Optional[date] = None,
                            stock_analysis_id: Optional[int] = None
                            ) -> Tuple[List[PricePoint], str, Optional[str]]:
        """
        Price history for a symbol or a stored analysis.

        A stored analysis, when given, is the only source consulted. For a
        symbol, the latest stored analysis is preferred and market data is the
        fallback.

        Returns:
            (points, symbol, market)
        """
        if not symbol and stock_analysis_id is None:
            raise MissingParameterError("Either symbol or stock_analysis_id is required")

        if stock_analysis_id is not None:
            try:
                analysis = self._require_analysis(stock_analysis_id)
                bars = self.repository.get_price_bars(stock_analysis_id)
                if not bars:
                    raise InsufficientDataError(
                        f"No price data available for stock analysis ID {stock_analysis_id} "
                        f"(symbol: {analysis.symbol}). Ingest data for the analysis first."
                    )
                return with_pct_changes(bars), analysis.symbol or symbol, analysis.market
            except Exception as e:
                raise ExternalFetchError(
                    f"Failed to use stock analysis data (ID: {stock_analysis_id}): {e}"
                ) from e

        market = market or self.config.data.default_market

        try:
            existing = self.repository.find_latest_analysis(symbol, market)
            if existing is not None:
                bars = self.repository.get_price_bars(existing.id)
                if bars:
                    logger.info(f"Using stored analysis {existing.id} for {symbol}")
                    return with_pct_changes(bars), existing.symbol, existing.market or market
                logger.info(f"Stored analysis {existing.id} for {symbol} has no bars, using market data")
        except Exception as e:
            logger.warning(f"Failed to look up stored analysis for {symbol}: {e}")

        start = datetime.combine(start_date, datetime.min.time()) if start_date else None
        try:
            points = self.data_manager.load_history(symbol, market, start=start)
        except ExternalFetchError as e:
            raise ExternalFetchError(
                f"Failed to fetch historical data: {e}. Either ingest data into a stock "
                f"analysis first, or pass stock_analysis_id if an analysis already exists."
            ) from e

        return points, symbol, market

    def compute_feature_importance(self, params: FeatureImportanceParams) -> FeatureImportanceResult:
        """Rank lagged technical features for a symbol or stored analysis."""
        points, symbol, market = self.fetch_price_history(
            params.symbol, params.market, params.start_date, params.stock_analysis_id
        )
        enriched = self.enrich_with_indicators(points, symbol)
        return self.importance.compute(
            enriched,
            symbol=symbol,
            market=market,
            start_date=params.start_date,
            target_pct=params.target_pct,
            top_n=params.top_n
        )

    # ------------------------------------------------------------------
    # Simulation
    # ------------------------------------------------------------------

    def simulate_price_path(self, params: SimulationParameters) -> SimulationResult:
        """
        Simulate a forward price path.

        History from ``params.stock_analysis_id`` feeds the correlation and
        pattern estimates; if it cannot be loaded the simulation runs without
        it.
        """
        states = None
        series = None

        if params.stock_analysis_id is not None:
            try:
                days = self.calculate_factors_on_demand(params.stock_analysis_id)
                if days:
                    states = [d.state for d in days]
                    series = days
            except Exception as e:
                logger.warning(f"Error fetching historical data for simulation: {e}")

        return self.simulator.simulate(params, states, series)

    # ------------------------------------------------------------------
    # Narrative
    # ------------------------------------------------------------------

    def request_narrative(self, prompt: str, narrator: Optional[Narrator] = None) -> str:
        """Free-text insights from the narrative collaborator; never raises."""
        narrator = narrator or self.narrator
        if narrator is None:
            return "Narrative generation is not configured."
        try:
            return str(narrator(prompt))
        except Exception as e:
            logger.error(f"Narrative generation failed: {e}")
            return f"Error generating insights: {e}"


def compute_feature_importance(params: FeatureImportanceParams,
                               service: Optional[ResearchService] = None) -> FeatureImportanceResult:
    return (service or ResearchService()).compute_feature_importance(params)


def simulate_price_path(params: SimulationParameters,
                        service: Optional[ResearchService] = None) -> SimulationResult:
    return (service or ResearchService()).simulate_price_path(params)


def _print_section(title: str, values: Dict):
    print("\n" + "=" * 50)
    print(title)
    print("=" * 50)
    for key, value in values.items():
        if isinstance(value, float):
            print(f"{key}: {value:.4f}")
        else:
            print(f"{key}: {value}")


def main():
    """Command-line entry point."""
    import argparse

    parser = argparse.ArgumentParser(description='Quantitative Stock Research')
    parser.add_argument('--config', type=str, help='Path to config file')
    parser.add_argument('--mock', action='store_true', help='Use synthetic market data')
    parser.add_argument('--log-level', type=str, help='Logging level')

    subparsers = parser.add_subparsers(dest='command', required=True)

    sim = subparsers.add_parser('simulate', help='Simulate a forward price path')
    sim.add_argument('symbol', type=str)
    sim.add_argument('--market', type=str, help='Market code (US, VN)')
    sim.add_argument('--price', type=float, help='Initial price (defaults to the current quote)')
    sim.add_argument('--horizon', type=int, default=10, help='Trading days to simulate')
    sim.add_argument('--factor', action='append', default=[],
                     help='Active factor, e.g. volume_spike (repeatable)')
    sim.add_argument('--threshold', type=float, help='Score threshold')

    imp = subparsers.add_parser('importance', help='Rank lagged technical features')
    imp.add_argument('symbol', type=str)
    imp.add_argument('--market', type=str, help='Market code (US, VN)')
    imp.add_argument('--start-date', type=str, help='History start date (YYYY-MM-DD)')
    imp.add_argument('--target-pct', type=float, help='Strong-move threshold as a fraction')
    imp.add_argument('--top-n', type=int, help='Number of top features to report')

    args = parser.parse_args()

    config = SystemConfig.load(args.config) if args.config else SystemConfig()
    if args.mock:
        config.data.use_mock = True
    if args.log_level:
        config.log_level = args.log_level.upper()

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    service = ResearchService(config)

    if args.command == 'simulate':
        price = args.price
        if price is None:
            price = service.get_current_price(args.symbol, args.market)
        if price is None:
            print(f"No current price available for {args.symbol}; pass --price")
            return

        result = service.simulate_price_path(SimulationParameters(
            symbol=args.symbol,
            initial_price=price,
            time_horizon=args.horizon,
            threshold=args.threshold,
            factor_states={f: True for f in args.factor}
        ))

        _print_section(f"SIMULATION: {result.symbol}", {
            'initial_price': result.initial_price,
            'time_horizon': result.time_horizon,
            **{f"{s.type}_final": s.final_price for s in result.scenarios},
            **{f"ci_{int(c.confidence_level * 100)}": f"{c.lower_bound:.2f} - {c.upper_bound:.2f}"
               for c in result.confidence_intervals}
        })
    else:
        start_date = pd.Timestamp(args.start_date).date() if args.start_date else None
        result = service.compute_feature_importance(FeatureImportanceParams(
            symbol=args.symbol,
            market=args.market,
            start_date=start_date,
            target_pct=args.target_pct,
            top_n=args.top_n
        ))

        _print_section(f"FEATURE IMPORTANCE: {result.symbol}", {
            'total_days': result.total_days,
            'strong_days': result.strong_days,
            'baseline_accuracy': result.baseline_accuracy,
            **{item.factor: item.importance for item in result.top_factors}
        })


if __name__ == "__main__":
    main()
