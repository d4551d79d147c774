"""
Position, trade and result models.

These dataclasses represent the objects passed between the rule
evaluator, the execution loop and the statistics aggregator.  Keeping
them in a separate module improves readability and makes unit testing
of single loop transitions easier.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import pandas as pd


def _iso(ts: Any) -> Any:
    return ts.isoformat() if hasattr(ts, 'isoformat') else ts


@dataclass
class Position:
    """Represents the single open position of a run."""
    side: str  # 'long' or 'short'
    quantity: int
    entry_price: float
    entry_time: pd.Timestamp
    stop_loss: float
    take_profit: float

    @property
    def cost(self) -> float:
        """Cash committed when the position was opened."""
        return self.quantity * self.entry_price

    def pnl_at(self, price: float) -> float:
        if self.side == 'long':
            return (price - self.entry_price) * self.quantity
        return (self.entry_price - price) * self.quantity

    def market_value(self, price: float) -> float:
        """Committed cash plus unrealised P&L at `price`.

        For a long this equals ``quantity * price``.
        """
        return self.cost + self.pnl_at(price)


@dataclass(frozen=True)
class Trade:
    """Represents a completed trade."""
    side: str
    quantity: int
    entry_price: float
    exit_price: float
    entry_time: pd.Timestamp
    exit_time: pd.Timestamp
    pnl: float
    pnl_percent: float
    reason: str  # 'stop_loss', 'take_profit', 'exit_rule' or 'end_of_data'

    @property
    def return_fraction(self) -> float:
        """P&L relative to the notional committed at entry."""
        return self.pnl / (self.entry_price * self.quantity)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'entry_time': _iso(self.entry_time),
            'exit_time': _iso(self.exit_time),
            'entry_price': self.entry_price,
            'exit_price': self.exit_price,
            'type': self.side,
            'quantity': self.quantity,
            'pnl': self.pnl,
            'pnl_percent': self.pnl_percent,
            'reason': self.reason,
        }


@dataclass(frozen=True)
class EquityPoint:
    """Represents the account equity at a given timestamp."""
    timestamp: pd.Timestamp
    equity: float

    def to_dict(self) -> Dict[str, Any]:
        return {'timestamp': _iso(self.timestamp), 'equity': self.equity}


@dataclass
class SimulationState:
    """Mutable state threaded through the execution loop."""
    cash: float
    peak_equity: float
    position: Optional[Position] = None
    max_drawdown: float = 0.0
    trades: List[Trade] = field(default_factory=list)
    equity_curve: List[EquityPoint] = field(default_factory=list)

    @classmethod
    def initial(cls, capital: float) -> "SimulationState":
        return cls(cash=capital, peak_equity=capital)

    def equity(self, price: float, release_position_cash: bool = False) -> float:
        """Cash plus the open position valued at `price`.

        The position counts as ``quantity * price`` unless
        `release_position_cash` is set, in which case it is worth its
        committed cash plus unrealised P&L (the two only differ for a
        short).
        """
        if self.position is None:
            return self.cash
        if release_position_cash:
            return self.cash + self.position.market_value(price)
        return self.cash + self.position.quantity * price


@dataclass
class TradeStats:
    """Per-trade summary statistics."""
    avg_win: float = 0.0
    avg_loss: float = 0.0
    largest_win: float = 0.0
    largest_loss: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {
            'avg_win': self.avg_win,
            'avg_loss': self.avg_loss,
            'largest_win': self.largest_win,
            'largest_loss': self.largest_loss,
        }


@dataclass
class BacktestResult:
    """Aggregate output of one backtest run."""
    initial_capital: float
    final_capital: float
    total_trades: int
    winning_trades: int
    losing_trades: int
    win_rate: float
    profit_factor: float
    sharpe_ratio: float
    max_drawdown: float
    total_return: float
    avg_trade_return: float
    trades_data: List[Trade]
    equity_curve: List[EquityPoint]
    metrics: TradeStats

    def summary(self) -> Dict[str, Any]:
        """Scalar fields only, suitable for a JSON summary."""
        return {
            'initial_capital': self.initial_capital,
            'final_capital': self.final_capital,
            'total_trades': self.total_trades,
            'winning_trades': self.winning_trades,
            'losing_trades': self.losing_trades,
            'win_rate': self.win_rate,
            'profit_factor': self.profit_factor,
            'sharpe_ratio': self.sharpe_ratio,
            'max_drawdown': self.max_drawdown,
            'total_return': self.total_return,
            'avg_trade_return': self.avg_trade_return,
            'metrics': self.metrics.to_dict(),
        }

    def to_dict(self) -> Dict[str, Any]:
        out = self.summary()
        out['trades_data'] = [t.to_dict() for t in self.trades_data]
        out['equity_curve'] = [p.to_dict() for p in self.equity_curve]
        return out
