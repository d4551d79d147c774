import os
import sys
import pandas as pd

# Ensure the project root (one level above `tests`) is on sys.path so that
# `backtester` can be imported when running tests directly via `python`.
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, os.pardir))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from backtester.errors import InputError
from backtester.strategy.rules import (
    PriceAboveMA,
    RsiOverbought,
    RsiOversold,
    Signal,
    VolumeSurge,
    average_volume,
    calculate_rsi,
    calculate_sma,
    evaluate_rule,
    parse_rule,
    rule_to_dict,
)

import unittest


def make_window(closes, volumes=None):
    volumes = volumes if volumes is not None else [1000.0] * len(closes)
    index = pd.date_range("2024-01-01", periods=len(closes), freq="D", tz="UTC")
    return pd.DataFrame({"close": closes, "volume": volumes}, index=index, dtype=float)


def make_bar(close, volume=1000.0):
    return pd.Series({"open": close, "high": close, "low": close, "close": close, "volume": volume})


class TestIndicators(unittest.TestCase):
    def test_sma_uses_last_period_closes(self) -> None:
        window = make_window([1, 2, 3, 4, 5])
        self.assertAlmostEqual(calculate_sma(window, 2), 4.5)
        self.assertAlmostEqual(calculate_sma(window, 5), 3.0)

    def test_sma_sums_closes_in_bar_order(self) -> None:
        closes = [0.1, 0.2, 0.3, 0.7, 1.1]
        expected = ((((0.1 + 0.2) + 0.3) + 0.7) + 1.1) / 5
        self.assertEqual(calculate_sma(make_window(closes), 5), expected)

    def test_rsi_sums_changes_in_bar_order(self) -> None:
        closes = [1.0, 1.1, 1.3, 1.2, 1.7]
        gains = ((1.1 - 1.0) + (1.3 - 1.1)) + (1.7 - 1.2)
        losses = -(1.2 - 1.3)
        expected = 100.0 - 100.0 / (1.0 + (gains / 4) / (losses / 4))
        self.assertEqual(calculate_rsi(make_window(closes), 4), expected)

    def test_sma_is_zero_without_enough_data(self) -> None:
        self.assertEqual(calculate_sma(make_window([10, 11]), 3), 0.0)

    def test_rsi_is_neutral_with_fewer_than_period_plus_one_bars(self) -> None:
        # Fourteen bars are one short of the 15 needed for a 14-period RSI,
        # whatever the price pattern.
        crash = make_window([100 - 5 * i for i in range(14)])
        rally = make_window([100 + 5 * i for i in range(14)])
        self.assertEqual(calculate_rsi(crash, 14), 50.0)
        self.assertEqual(calculate_rsi(rally, 14), 50.0)

    def test_rsi_is_100_without_losses(self) -> None:
        self.assertEqual(calculate_rsi(make_window([1, 2, 3, 4]), 3), 100.0)

    def test_rsi_only_uses_last_period_changes(self) -> None:
        # Changes: -10 (outside lookback), +2, -1, +1
        window = make_window([20, 10, 12, 11, 12])
        # gains 3, losses 1 -> rs 3 -> 75
        self.assertAlmostEqual(calculate_rsi(window, 3), 75.0)

    def test_rsi_is_zero_on_steady_decline(self) -> None:
        self.assertAlmostEqual(calculate_rsi(make_window([5, 4, 3, 2]), 3), 0.0)

    def test_average_volume_always_divides_by_twenty(self) -> None:
        window = make_window([1] * 5, volumes=[100] * 5)
        self.assertAlmostEqual(average_volume(window), 25.0)
        window = make_window([1] * 30, volumes=[100] * 10 + [200] * 20)
        self.assertAlmostEqual(average_volume(window), 200.0)


class TestEvaluateRule(unittest.TestCase):
    def test_price_above_ma_is_bullish_or_bearish(self) -> None:
        window = make_window([10, 12])
        self.assertIs(evaluate_rule(PriceAboveMA(period=2), make_bar(11.5), None, window), Signal.BULLISH)
        self.assertIs(evaluate_rule(PriceAboveMA(period=2), make_bar(11.0), None, window), Signal.BEARISH)

    def test_price_above_ma_without_history_is_bullish(self) -> None:
        # SMA falls back to 0, so any positive close is above it.
        window = make_window([10])
        self.assertIs(evaluate_rule(PriceAboveMA(period=2), make_bar(9.0), None, window), Signal.BULLISH)

    def test_rsi_rules(self) -> None:
        falling = make_window([5, 4, 3, 2])
        rising = make_window([2, 3, 4, 5])
        bar = make_bar(5.0)
        self.assertIs(evaluate_rule(RsiOversold(period=3), bar, None, falling), Signal.BULLISH)
        self.assertIs(evaluate_rule(RsiOversold(period=3), bar, None, rising), Signal.NONE)
        self.assertIs(evaluate_rule(RsiOverbought(period=3), bar, None, rising), Signal.BEARISH)
        self.assertIs(evaluate_rule(RsiOverbought(period=3), bar, None, falling), Signal.NONE)

    def test_rsi_thresholds_bound_the_signal(self) -> None:
        window = make_window([20, 10, 12, 11, 12])  # RSI 75
        bar = make_bar(12.0)
        self.assertIs(evaluate_rule(RsiOverbought(period=3, threshold=76), bar, None, window), Signal.NONE)
        self.assertIs(evaluate_rule(RsiOverbought(period=3, threshold=74), bar, None, window), Signal.BEARISH)
        self.assertIs(evaluate_rule(RsiOversold(period=3, threshold=74), bar, None, window), Signal.NONE)

    def test_volume_surge(self) -> None:
        window = make_window([1] * 20, volumes=[100] * 20)
        self.assertIs(evaluate_rule(VolumeSurge(), make_bar(1.0, volume=151), None, window), Signal.BULLISH)
        self.assertIs(evaluate_rule(VolumeSurge(), make_bar(1.0, volume=150), None, window), Signal.NONE)
        self.assertIs(evaluate_rule(VolumeSurge(multiplier=3), make_bar(1.0, volume=250), None, window), Signal.NONE)


class TestParseRule(unittest.TestCase):
    def test_defaults_fill_missing_params(self) -> None:
        self.assertEqual(parse_rule({"type": "price_above_ma"}), PriceAboveMA(period=20))
        self.assertEqual(parse_rule({"type": "rsi_oversold", "params": {}}), RsiOversold(14, 30.0))
        self.assertEqual(parse_rule({"type": "rsi_overbought", "params": {"threshold": 80}}), RsiOverbought(14, 80.0))
        self.assertEqual(parse_rule({"type": "volume_surge", "params": {"multiplier": "2"}}), VolumeSurge(2.0))

    def test_round_trip_through_dict(self) -> None:
        rule = RsiOversold(period=7, threshold=25.0)
        self.assertEqual(parse_rule(rule_to_dict(rule)), rule)

    def test_rejects_unknown_type(self) -> None:
        with self.assertRaises(InputError):
            parse_rule({"type": "zeta_resonance", "params": {}})

    def test_rejects_unknown_param(self) -> None:
        with self.assertRaises(InputError):
            parse_rule({"type": "volume_surge", "params": {"period": 5}})

    def test_rejects_non_positive_period(self) -> None:
        with self.assertRaises(InputError):
            parse_rule({"type": "price_above_ma", "params": {"period": 0}})

    def test_rejects_non_numeric_value(self) -> None:
        with self.assertRaises(InputError):
            parse_rule({"type": "rsi_oversold", "params": {"threshold": "low"}})


if __name__ == '__main__':
    unittest.main()
