"""
Application entry point.

This module defines the command-line interface: ``backtest`` runs a
stored strategy over a symbol's history, writes a report and stores the
result; ``show`` prints the summary of a stored run.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
from typing import List, Optional

from .config.schema import Config, load_config
from .errors import BacktestError
from .reporting.report import generate_backtest_report
from .service import BacktestRequest, BacktestService
from .storage.repository import ResultRepository


logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )


def _load_config(path: str) -> Config:
    if os.path.exists(path):
        return load_config(path)
    logger.debug("Config file %s not found, using defaults", path)
    return Config()


def _cmd_backtest(args: argparse.Namespace, config: Config) -> int:
    service = BacktestService(config)
    request = BacktestRequest(
        strategy_id=args.strategy,
        symbol=args.symbol,
        start_date=args.start,
        end_date=args.end,
        initial_capital=args.capital,
    )
    run = service.run(request)
    out_dir = os.path.join(args.out or config.report.out_dir, run.run_id)
    generate_backtest_report(run.result, out_dir=out_dir, plot=config.report.plot)
    logger.info(
        "Backtest %s complete: %d trades, return %.2f%%, max drawdown %.2f%%. Report written to %s",
        run.run_id,
        run.result.total_trades,
        run.result.total_return,
        run.result.max_drawdown,
        out_dir,
    )
    return 0


def _cmd_show(args: argparse.Namespace, config: Config) -> int:
    record = ResultRepository(config.storage.results_dir).load(args.run_id)
    if record is None:
        logger.error("No stored backtest with id %s", args.run_id)
        return 1
    record.pop('trades_data', None)
    record.pop('equity_curve', None)
    print(json.dumps(record, indent=2, sort_keys=True))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Parse command-line arguments and dispatch to the selected command."""
    parser = argparse.ArgumentParser(description="Strategy backtester")
    parser.add_argument('--config', default='config.yaml', help="Path to configuration YAML file")
    parser.add_argument('-v', '--verbose', action='store_true', help="Enable debug logging")
    sub = parser.add_subparsers(dest='command', required=True)

    bt = sub.add_parser('backtest', help="Run a stored strategy over historical bars")
    bt.add_argument('--strategy', required=True, help="Strategy id in the strategy store")
    bt.add_argument('--symbol', help="Symbol to test (defaults to the strategy's symbol)")
    bt.add_argument('--start', help="First date to include (YYYY-MM-DD or ISO timestamp)")
    bt.add_argument('--end', help="Last date to include")
    bt.add_argument('--capital', type=float, default=None, help="Initial capital")
    bt.add_argument('--out', default=None, help="Report directory (defaults to report.out_dir)")

    show = sub.add_parser('show', help="Print the summary of a stored backtest")
    show.add_argument('run_id')

    args = parser.parse_args(argv)
    _setup_logging(args.verbose)
    config = _load_config(args.config)

    try:
        if args.command == 'backtest':
            return _cmd_backtest(args, config)
        return _cmd_show(args, config)
    except BacktestError as exc:
        logger.error("Backtest rejected: %s", exc)
        return 1


if __name__ == '__main__':
    raise SystemExit(main())
