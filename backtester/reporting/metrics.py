"""
Performance metrics calculations.

This module reduces the trades and equity curve of a finished run into
a `BacktestResult`.  The equity curve is only used for reporting here;
maximum drawdown is tracked by the execution loop while it runs.
"""

from __future__ import annotations

from typing import List
import math

from ..config.schema import TRADING_DAYS_PER_YEAR
from ..execution.models import BacktestResult, EquityPoint, Trade, TradeStats


def sharpe_ratio(returns: List[float], periods_per_year: int = TRADING_DAYS_PER_YEAR) -> float:
    """Annualised Sharpe ratio of per-trade returns.

    Uses the population standard deviation and no risk-free rate.
    Returns 0 when there are no returns or they do not vary.
    """
    if not returns:
        return 0.0
    mean_ret = sum(returns) / len(returns)
    variance = sum((r - mean_ret) ** 2 for r in returns) / len(returns)
    std_dev = math.sqrt(variance)
    if std_dev == 0:
        return 0.0
    return (mean_ret / std_dev) * math.sqrt(periods_per_year)


def compute_metrics(
    trades: List[Trade],
    equity_curve: List[EquityPoint],
    initial_capital: float,
    final_capital: float,
    max_drawdown: float = 0.0,
    periods_per_year: int = TRADING_DAYS_PER_YEAR,
) -> BacktestResult:
    """Compute the summary statistics of a backtest.

    Parameters
    ----------
    trades : list of Trade
        Completed trades in the order they were closed.
    equity_curve : list of EquityPoint
        One equity sample per processed bar.
    initial_capital, final_capital : float
        Cash at the start and marked-to-market value at the end.
    max_drawdown : float
        Largest peak-to-trough decline in percent, from the loop.
    periods_per_year : int
        Annualisation factor for the Sharpe ratio.

    Returns
    -------
    BacktestResult
    """
    total_trades = len(trades)
    # A flat trade counts as a loss.
    wins = [t.pnl for t in trades if t.pnl > 0]
    losses = [t.pnl for t in trades if t.pnl <= 0]

    win_rate = len(wins) / total_trades * 100 if total_trades else 0.0
    avg_win = sum(wins) / len(wins) if wins else 0.0
    avg_loss = abs(sum(losses) / len(losses)) if losses else 0.0
    profit_factor = avg_win / avg_loss if avg_loss > 0 else 0.0

    returns = [t.return_fraction for t in trades]
    avg_return = sum(returns) / len(returns) if returns else 0.0

    total_return = (final_capital - initial_capital) / initial_capital * 100 if initial_capital else 0.0

    pnls = [t.pnl for t in trades]
    stats = TradeStats(
        avg_win=avg_win,
        avg_loss=avg_loss,
        largest_win=max(pnls) if pnls else 0.0,
        largest_loss=min(pnls) if pnls else 0.0,
    )

    return BacktestResult(
        initial_capital=initial_capital,
        final_capital=final_capital,
        total_trades=total_trades,
        winning_trades=len(wins),
        losing_trades=len(losses),
        win_rate=win_rate,
        profit_factor=profit_factor,
        sharpe_ratio=sharpe_ratio(returns, periods_per_year),
        max_drawdown=max_drawdown,
        total_return=total_return,
        avg_trade_return=avg_return * 100,
        trades_data=list(trades),
        equity_curve=list(equity_curve),
        metrics=stats,
    )
