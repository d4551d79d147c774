import math
import os
import sys
import pandas as pd

CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, os.pardir))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from backtester.execution.models import EquityPoint, Trade
from backtester.reporting.metrics import compute_metrics, sharpe_ratio

import unittest


def make_trade(pnl, entry_price=10.0, quantity=100):
    ts = pd.Timestamp("2024-01-01", tz="UTC")
    return Trade(
        side='long',
        quantity=quantity,
        entry_price=entry_price,
        exit_price=entry_price + pnl / quantity,
        entry_time=ts,
        exit_time=ts + pd.Timedelta(days=1),
        pnl=pnl,
        pnl_percent=pnl / (entry_price * quantity) * 100,
        reason='take_profit' if pnl > 0 else 'stop_loss',
    )


class TestComputeMetrics(unittest.TestCase):
    def test_summary_statistics(self) -> None:
        trades = [make_trade(100.0), make_trade(-50.0), make_trade(0.0)]
        result = compute_metrics(trades, [], initial_capital=10000.0, final_capital=10050.0)

        self.assertEqual(result.total_trades, 3)
        # A break-even trade counts as a loss.
        self.assertEqual(result.winning_trades, 1)
        self.assertEqual(result.losing_trades, 2)
        self.assertAlmostEqual(result.win_rate, 100 / 3)
        self.assertAlmostEqual(result.metrics.avg_win, 100.0)
        self.assertAlmostEqual(result.metrics.avg_loss, 25.0)
        self.assertAlmostEqual(result.profit_factor, 4.0)
        self.assertAlmostEqual(result.metrics.largest_win, 100.0)
        self.assertAlmostEqual(result.metrics.largest_loss, -50.0)
        self.assertAlmostEqual(result.avg_trade_return, 100 / 60)
        self.assertAlmostEqual(result.sharpe_ratio, 3 * math.sqrt(2))
        self.assertAlmostEqual(result.total_return, 0.5)

    def test_no_trades(self) -> None:
        result = compute_metrics([], [], initial_capital=10000.0, final_capital=10000.0)
        self.assertEqual(result.win_rate, 0.0)
        self.assertEqual(result.profit_factor, 0.0)
        self.assertEqual(result.sharpe_ratio, 0.0)
        self.assertEqual(result.avg_trade_return, 0.0)
        self.assertEqual(result.metrics.to_dict(), {
            'avg_win': 0.0, 'avg_loss': 0.0, 'largest_win': 0.0, 'largest_loss': 0.0,
        })

    def test_profit_factor_without_losses_is_zero(self) -> None:
        result = compute_metrics([make_trade(10.0), make_trade(20.0)], [], 10000.0, 10030.0)
        self.assertEqual(result.profit_factor, 0.0)
        self.assertEqual(result.win_rate, 100.0)

    def test_returns_are_relative_to_notional(self) -> None:
        # Same pnl on a smaller notional is a larger return.
        result = compute_metrics([make_trade(10.0, entry_price=1.0, quantity=100)], [], 10000.0, 10010.0)
        self.assertAlmostEqual(result.avg_trade_return, 10.0)

    def test_to_dict_is_json_ready(self) -> None:
        ts = pd.Timestamp("2024-01-02", tz="UTC")
        result = compute_metrics([make_trade(5.0)], [EquityPoint(ts, 10005.0)], 10000.0, 10005.0)
        out = result.to_dict()
        self.assertEqual(out['equity_curve'], [{'timestamp': '2024-01-02T00:00:00+00:00', 'equity': 10005.0}])
        self.assertEqual(out['trades_data'][0]['type'], 'long')
        self.assertEqual(out['trades_data'][0]['entry_time'], '2024-01-01T00:00:00+00:00')
        self.assertNotIn('trades_data', result.summary())


class TestSharpe(unittest.TestCase):
    def test_constant_returns_have_zero_sharpe(self) -> None:
        self.assertEqual(sharpe_ratio([0.01, 0.01, 0.01]), 0.0)

    def test_population_std_and_annualisation(self) -> None:
        # mean 0.02, population std 0.01
        self.assertAlmostEqual(sharpe_ratio([0.01, 0.03]), 2 * math.sqrt(252))
        self.assertAlmostEqual(sharpe_ratio([0.01, 0.03], periods_per_year=1), 2.0)


if __name__ == '__main__':
    unittest.main()
