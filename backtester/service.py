"""
Backtest service.

Wires the simulator to its collaborators: a run request names a stored
strategy, a symbol and a date range; the service loads the strategy and
the matching bars, runs the engine, persists the result and returns it.
Any `InputError` is raised before the engine starts and nothing is
stored for a rejected run.

Independent runs share no state, so `run_many()` simply fans requests
out over a thread pool.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, List, Optional

from .config.schema import Config
from .data.csv_data import CSVDataLoader
from .errors import BacktestError, InputError
from .execution.backtest_exec import BacktestEngine
from .execution.models import BacktestResult
from .storage.repository import ResultRepository, StrategyRepository


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BacktestRequest:
    strategy_id: str
    symbol: Optional[str] = None
    start_date: Any = None
    end_date: Any = None
    initial_capital: Optional[float] = None


@dataclass
class BacktestRun:
    """A stored run: its id, the request that produced it and the result."""
    run_id: str
    request: BacktestRequest
    symbol: str
    timeframe: str
    result: BacktestResult


@dataclass
class RunOutcome:
    """Result of one request in a batch; exactly one of `run`/`error` is set."""
    request: BacktestRequest
    run: Optional[BacktestRun] = None
    error: Optional[Exception] = None


class BacktestService:
    """Run backtests against the configured strategy, bar and result stores."""

    def __init__(
        self,
        config: Config,
        strategies: Optional[StrategyRepository] = None,
        data: Optional[CSVDataLoader] = None,
        results: Optional[ResultRepository] = None,
    ) -> None:
        self.config = config
        self.strategies = strategies or StrategyRepository(config.storage.strategies_file)
        self.data = data or CSVDataLoader(config.data.csv_dir, config.data.timezone)
        self.results = results or ResultRepository(config.storage.results_dir)
        self.engine = BacktestEngine(config.engine)

    def run(self, request: BacktestRequest) -> BacktestRun:
        """Execute and persist a single backtest."""
        strategy = self.strategies.get(request.strategy_id)
        symbol = request.symbol or strategy.symbol
        if not symbol:
            raise InputError(f"No symbol given for strategy {strategy.id}")

        bars = self.data.load_range(symbol, strategy.timeframe, request.start_date, request.end_date)
        logger.info("Running backtest for %s with %d data points", symbol, len(bars))

        capital = request.initial_capital
        if capital is None:
            capital = self.config.engine.initial_capital
        result = self.engine.run(strategy, bars, initial_capital=capital)

        record = {
            'strategy_id': strategy.id,
            'symbol': symbol,
            'timeframe': strategy.timeframe,
            'start_date': str(request.start_date) if request.start_date is not None else None,
            'end_date': str(request.end_date) if request.end_date is not None else None,
        }
        record.update(result.to_dict())
        run_id = self.results.save(record)
        logger.info("Stored backtest %s for strategy %s", run_id, strategy.id)
        return BacktestRun(run_id=run_id, request=request, symbol=symbol, timeframe=strategy.timeframe, result=result)

    def run_many(self, requests: List[BacktestRequest], max_workers: int = 4) -> List[RunOutcome]:
        """Run independent backtests in parallel.

        Outcomes are returned in request order.  A request that fails,
        whether rejected as bad input or failing unexpectedly, is
        reported in its outcome and does not affect the others.
        """
        outcomes: List[RunOutcome] = []
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = [(request, executor.submit(self.run, request)) for request in requests]
            for request, future in futures:
                try:
                    outcomes.append(RunOutcome(request=request, run=future.result()))
                except BacktestError as exc:
                    logger.warning("Backtest for %s rejected: %s", request.strategy_id, exc)
                    outcomes.append(RunOutcome(request=request, error=exc))
                except Exception as exc:
                    logger.exception("Backtest for %s failed", request.strategy_id)
                    outcomes.append(RunOutcome(request=request, error=exc))
        return outcomes
