"""
Backtest execution engine.

This module contains the `BacktestEngine` class which iterates over a
bar series, asks the strategy's rules for entry and exit decisions,
executes simulated fills at the bar close and records trades and the
equity curve.  The engine holds no state between runs; everything a run
changes lives in a `SimulationState`.
"""

from __future__ import annotations

import logging
import math
from typing import Optional
import pandas as pd

from ..config.schema import EngineConfig
from ..errors import InputError, InsufficientDataError
from ..reporting.metrics import compute_metrics
from ..strategy.definition import Strategy, calculate_position_size
from ..strategy.signals import evaluate_entry_rules, evaluate_exit_rules
from .models import BacktestResult, EquityPoint, Position, SimulationState, Trade


logger = logging.getLogger(__name__)

PRICE_COLUMNS = ('open', 'high', 'low', 'close')
REQUIRED_COLUMNS = PRICE_COLUMNS + ('volume',)


def validate_bars(bars: pd.DataFrame) -> None:
    """Reject bar series the loop cannot run on."""
    missing = [c for c in REQUIRED_COLUMNS if c not in bars.columns]
    if missing:
        raise InputError(f"Bar series is missing columns: {missing}")
    if len(bars) < 2:
        raise InsufficientDataError(
            f"Insufficient historical data for backtest: {len(bars)} bar(s), need at least 2"
        )
    prices = bars[list(PRICE_COLUMNS)]
    try:
        prices = prices.astype(float)
        volume = bars['volume'].astype(float)
    except (TypeError, ValueError) as exc:
        raise InputError(f"Bar series has non-numeric prices or volume: {exc}") from exc
    bad_prices = ~((prices > 0) & (prices < math.inf)).all(axis=1)
    if bad_prices.any():
        raise InputError(
            f"Bar series has missing or non-positive prices at {list(bars.index[bad_prices.to_numpy()][:5])}"
        )
    bad_volume = ~((volume >= 0) & (volume < math.inf))
    if bad_volume.any():
        raise InputError(
            f"Bar series has missing or negative volume at {list(bars.index[bad_volume.to_numpy()][:5])}"
        )


class BacktestEngine:
    """Simulate a strategy bar-by-bar on historical data."""

    def __init__(self, config: Optional[EngineConfig] = None) -> None:
        self.config = config or EngineConfig()

    def _close_position(self, state: SimulationState, ts: pd.Timestamp, price: float, reason: str) -> Trade:
        position = state.position
        pnl = position.pnl_at(price)
        trade = Trade(
            side=position.side,
            quantity=position.quantity,
            entry_price=position.entry_price,
            exit_price=price,
            entry_time=position.entry_time,
            exit_time=ts,
            pnl=pnl,
            pnl_percent=pnl / position.cost * 100,
            reason=reason,
        )
        if self.config.release_position_cash:
            state.cash += position.cost + pnl
        else:
            state.cash += pnl
        state.trades.append(trade)
        state.position = None
        logger.debug("Closed %s x%d at %s (%s), pnl=%.2f", trade.side, trade.quantity, price, reason, pnl)
        return trade

    def _open_position(self, state: SimulationState, strategy: Strategy, side: str, ts: pd.Timestamp, price: float) -> Optional[Position]:
        if price <= 0:
            return None
        size = calculate_position_size(state.cash, strategy.risk_rules)
        quantity = math.floor(size / price)
        if quantity < 1 or quantity * price > state.cash:
            logger.debug("Skipping %s signal at %s: position size %.2f too small at price %s", side, ts, size, price)
            return None
        stop_loss, take_profit = strategy.risk_rules.levels(side, price)
        position = Position(
            side=side,
            quantity=quantity,
            entry_price=price,
            entry_time=ts,
            stop_loss=stop_loss,
            take_profit=take_profit,
        )
        state.cash -= position.cost
        state.position = position
        logger.debug("Opened %s x%d at %s (SL=%s, TP=%s)", side, quantity, price, stop_loss, take_profit)
        return position

    def step(self, state: SimulationState, strategy: Strategy, bars: pd.DataFrame, idx: int) -> SimulationState:
        """Process bar `idx` and return the updated state.

        The state is updated in place.  Rules see at most
        `lookback_bars` bars preceding `idx`; the bar itself is not part
        of the window.
        """
        ts = bars.index[idx]
        bar = bars.iloc[idx]
        prev_bar = bars.iloc[idx - 1] if idx > 0 else None
        window = bars.iloc[max(0, idx - self.config.lookback_bars):idx]
        close = float(bar['close'])

        if state.position is not None:
            reason = evaluate_exit_rules(
                strategy.exit_rules, state.position, bar, prev_bar, window, self.config.opposing_signal_exits
            )
            if reason is not None:
                self._close_position(state, ts, close, reason)

        # An exit on this bar is followed by an entry check on the same bar.
        if state.position is None:
            side = evaluate_entry_rules(
                strategy.entry_rules, bar, prev_bar, window, self.config.entry_consensus_ratio
            )
            if side is not None:
                self._open_position(state, strategy, side, ts, close)

        equity = state.equity(close, self.config.release_position_cash)
        state.equity_curve.append(EquityPoint(timestamp=ts, equity=equity))

        if equity > state.peak_equity:
            state.peak_equity = equity
        if state.peak_equity > 0:
            drawdown = (state.peak_equity - equity) / state.peak_equity * 100
            if drawdown > state.max_drawdown:
                state.max_drawdown = drawdown
        return state

    def run(self, strategy: Strategy, bars: pd.DataFrame, initial_capital: Optional[float] = None) -> BacktestResult:
        """Execute the backtest.

        Parameters
        ----------
        strategy : Strategy
            The strategy to simulate.
        bars : pandas.DataFrame
            OHLCV bars indexed by timestamp in ascending order.  The
            first bar only seeds history.
        initial_capital : float, optional
            Starting cash; defaults to the configured initial capital.

        Returns
        -------
        BacktestResult
        """
        capital = self.config.initial_capital if initial_capital is None else float(initial_capital)
        if capital <= 0:
            raise InputError(f"initial_capital must be positive, got {capital}")
        validate_bars(bars)

        state = SimulationState.initial(capital)
        for idx in range(1, len(bars)):
            self.step(state, strategy, bars, idx)

        last_ts = bars.index[-1]
        last_close = float(bars['close'].iloc[-1])
        if state.position is not None and self.config.close_open_position_at_end:
            self._close_position(state, last_ts, last_close, 'end_of_data')
        final_capital = state.equity(last_close, self.config.release_position_cash)

        result = compute_metrics(
            state.trades,
            state.equity_curve,
            initial_capital=capital,
            final_capital=final_capital,
            max_drawdown=state.max_drawdown,
            periods_per_year=self.config.annualization_factor,
        )
        logger.info(
            "Backtest %s: %d bars, %d trades, final capital %.2f (%.2f%%)",
            strategy.id,
            len(bars),
            result.total_trades,
            result.final_capital,
            result.total_return,
        )
        return result
