"""
Rule definitions and rule evaluation.

A strategy is described declaratively by a list of rules.  Each rule
kind is a small frozen dataclass holding its own parameters; the set of
kinds is closed and `evaluate_rule()` handles every one of them
explicitly.  Rules are parsed from the ``{"type": ..., "params": {...}}``
mappings stored with a strategy definition.

All indicator helpers operate on the trailing window of bars *before*
the bar being evaluated.  The window is a slice of the bar
`DataFrame` with at least ``close`` and ``volume`` columns.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union
import pandas as pd

from ..errors import InputError


# Bars averaged by the volume surge rule.  The sum over the window is
# always divided by this number, even when fewer bars are available.
VOLUME_AVERAGE_BARS = 20

# RSI value reported when the window is too short to measure momentum.
NEUTRAL_RSI = 50.0


class Signal(str, Enum):
    """Outcome of evaluating a single rule on one bar."""

    BULLISH = "bullish"
    BEARISH = "bearish"
    EXIT = "exit"
    NONE = "none"


@dataclass(frozen=True)
class PriceAboveMA:
    """Bullish when the close is above its simple moving average, else bearish."""

    period: int = 20


@dataclass(frozen=True)
class RsiOversold:
    """Bullish when RSI drops below `threshold`."""

    period: int = 14
    threshold: float = 30.0


@dataclass(frozen=True)
class RsiOverbought:
    """Bearish when RSI rises above `threshold`."""

    period: int = 14
    threshold: float = 70.0


@dataclass(frozen=True)
class VolumeSurge:
    """Bullish when volume exceeds the recent average by `multiplier`."""

    multiplier: float = 1.5


Rule = Union[PriceAboveMA, RsiOversold, RsiOverbought, VolumeSurge]

RULE_TYPES: Dict[str, type] = {
    'price_above_ma': PriceAboveMA,
    'rsi_oversold': RsiOversold,
    'rsi_overbought': RsiOverbought,
    'volume_surge': VolumeSurge,
}

_RULE_NAMES = {cls: name for name, cls in RULE_TYPES.items()}


def rule_type_name(rule: Rule) -> str:
    """Return the type tag a rule is stored under."""
    return _RULE_NAMES[type(rule)]


def parse_rule(raw: Mapping[str, Any]) -> Rule:
    """Build a rule from its stored ``{"type", "params"}`` mapping.

    Missing parameters take the rule's defaults.  Unknown rule types,
    unknown parameters and non-positive periods are rejected with an
    `InputError` so a malformed strategy never reaches the simulator.
    """
    if not isinstance(raw, Mapping):
        raise InputError(f"Rule must be a mapping, got {type(raw).__name__}")
    rule_type = raw.get('type')
    cls = RULE_TYPES.get(rule_type)
    if cls is None:
        raise InputError(f"Unknown rule type: {rule_type!r}")

    params = dict(raw.get('params') or {})
    allowed = {f.name: f for f in fields(cls)}
    unknown = sorted(set(params) - set(allowed))
    if unknown:
        raise InputError(f"Unknown parameters for {rule_type}: {unknown}")

    kwargs: Dict[str, Any] = {}
    for name, value in params.items():
        if value is None:
            continue
        try:
            kwargs[name] = int(value) if name == 'period' else float(value)
        except (TypeError, ValueError) as exc:
            raise InputError(f"Invalid value for {rule_type}.{name}: {value!r}") from exc

    rule = cls(**kwargs)
    if getattr(rule, 'period', 1) < 1:
        raise InputError(f"{rule_type}.period must be at least 1")
    return rule


def rule_to_dict(rule: Rule) -> Dict[str, Any]:
    """Inverse of `parse_rule()`."""
    return {
        'type': rule_type_name(rule),
        'params': {f.name: getattr(rule, f.name) for f in fields(rule)},
    }


def calculate_sma(window: pd.DataFrame, period: int) -> float:
    """Mean of the last `period` closes, or 0 when the window is shorter."""
    if len(window) < period:
        return 0.0
    closes = window['close'].iloc[-period:]
    return sum(closes.tolist()) / period


def calculate_rsi(window: pd.DataFrame, period: int = 14) -> float:
    """Relative strength index over the last `period` close-to-close changes.

    Gains and losses are summed over the lookback and each divided by
    `period`.  Returns `NEUTRAL_RSI` when fewer than ``period + 1`` bars
    are available and 100 when there were no losses.
    """
    if len(window) < period + 1:
        return NEUTRAL_RSI

    changes = window['close'].diff().iloc[-period:]
    gains = 0.0
    losses = 0.0
    for change in changes.tolist():
        if change > 0:
            gains += change
        else:
            losses -= change

    avg_gain = gains / period
    avg_loss = losses / period
    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100.0 - (100.0 / (1.0 + rs))


def average_volume(window: pd.DataFrame) -> float:
    """Volume summed over the last `VOLUME_AVERAGE_BARS` bars, divided by that count."""
    volumes = window['volume'].iloc[-VOLUME_AVERAGE_BARS:]
    return sum(volumes.tolist()) / VOLUME_AVERAGE_BARS


def evaluate_rule(
    rule: Rule,
    current_bar: pd.Series,
    previous_bar: Optional[pd.Series],
    window: pd.DataFrame,
) -> Signal:
    """Evaluate one rule for the current bar.

    Parameters
    ----------
    rule : Rule
        One of the supported rule dataclasses.
    current_bar : pandas.Series
        The bar being decided on.
    previous_bar : pandas.Series or None
        The bar immediately before `current_bar`.  None of the current
        rule kinds read it; it is part of the evaluation contract.
    window : pandas.DataFrame
        Trailing bars preceding `current_bar`.

    Returns
    -------
    Signal
        `BULLISH`, `BEARISH` or `NONE`.  None of the current rule kinds
        signals `EXIT`; see `signals.evaluate_exit_rule()`.
    """
    close = float(current_bar['close'])

    if isinstance(rule, PriceAboveMA):
        sma = calculate_sma(window, rule.period)
        return Signal.BULLISH if close > sma else Signal.BEARISH

    if isinstance(rule, RsiOversold):
        rsi = calculate_rsi(window, rule.period)
        return Signal.BULLISH if rsi < rule.threshold else Signal.NONE

    if isinstance(rule, RsiOverbought):
        rsi = calculate_rsi(window, rule.period)
        return Signal.BEARISH if rsi > rule.threshold else Signal.NONE

    if isinstance(rule, VolumeSurge):
        surge = float(current_bar['volume']) > average_volume(window) * rule.multiplier
        return Signal.BULLISH if surge else Signal.NONE

    raise TypeError(f"Unsupported rule: {rule!r}")
