"""
Exceptions raised by the backtester.

Every failure the simulator can report happens before the bar loop
starts: the strategy could not be found or parsed, or the historical
series is too short to evaluate anything.  Once the loop is running all
arithmetic is guarded, so no exception is expected from it.
"""

from __future__ import annotations


class BacktestError(Exception):
    """Base class for all backtester errors."""


class InputError(BacktestError, ValueError):
    """The run was rejected because its inputs are unusable."""


class StrategyNotFoundError(InputError):
    """No strategy is stored under the requested id."""

    def __init__(self, strategy_id: str) -> None:
        super().__init__(f"Strategy not found: {strategy_id}")
        self.strategy_id = strategy_id


class InsufficientDataError(InputError):
    """The bar series is empty or too short for a backtest."""
