"""
Entry and exit decision policies.

The rule evaluator answers per rule; this module combines those
answers into a trading decision for the bar:

- entry: a direction is taken when at least `consensus_ratio` of the
  entry rules vote for it (long is checked first);
- exit: without exit rules the stop-loss / take-profit levels stored on
  the position decide; with exit rules any single rule signalling exit
  closes the position (optionally, a rule signalling against the open
  position counts as exit).
"""

from __future__ import annotations

from typing import Optional, Sequence
import pandas as pd

from ..config.schema import ENTRY_CONSENSUS_RATIO
from ..execution.models import Position
from .rules import Rule, Signal, evaluate_rule


def evaluate_entry_rules(
    rules: Sequence[Rule],
    current_bar: pd.Series,
    previous_bar: Optional[pd.Series],
    window: pd.DataFrame,
    consensus_ratio: float = ENTRY_CONSENSUS_RATIO,
) -> Optional[str]:
    """Return ``'long'``, ``'short'`` or `None` for the current bar."""
    if not rules:
        return None

    bullish = 0
    bearish = 0
    for rule in rules:
        signal = evaluate_rule(rule, current_bar, previous_bar, window)
        if signal is Signal.BULLISH:
            bullish += 1
        elif signal is Signal.BEARISH:
            bearish += 1

    required = len(rules) * consensus_ratio
    if bullish >= required:
        return 'long'
    if bearish >= required:
        return 'short'
    return None


def evaluate_exit_rule(
    rule: Rule,
    position: Position,
    current_bar: pd.Series,
    previous_bar: Optional[pd.Series],
    window: pd.DataFrame,
    opposing_signal_exits: bool = False,
) -> Signal:
    """Evaluate a rule in exit position.

    Only an explicit `Signal.EXIT` asks to exit.  With
    `opposing_signal_exits` a directional signal against the open
    position counts as exit too: bearish while long, bullish while short.
    """
    signal = evaluate_rule(rule, current_bar, previous_bar, window)
    if signal is Signal.EXIT:
        return Signal.EXIT
    if opposing_signal_exits:
        if position.side == 'long' and signal is Signal.BEARISH:
            return Signal.EXIT
        if position.side == 'short' and signal is Signal.BULLISH:
            return Signal.EXIT
    return Signal.NONE


def check_stop_levels(position: Position, close: float) -> Optional[str]:
    """Return ``'stop_loss'`` or ``'take_profit'`` if `close` breaches a level."""
    if position.side == 'long':
        if close <= position.stop_loss:
            return 'stop_loss'
        if close >= position.take_profit:
            return 'take_profit'
    else:
        if close >= position.stop_loss:
            return 'stop_loss'
        if close <= position.take_profit:
            return 'take_profit'
    return None


def evaluate_exit_rules(
    rules: Sequence[Rule],
    position: Position,
    current_bar: pd.Series,
    previous_bar: Optional[pd.Series],
    window: pd.DataFrame,
    opposing_signal_exits: bool = False,
) -> Optional[str]:
    """Return the exit reason for the open position, or `None` to hold."""
    if not rules:
        return check_stop_levels(position, float(current_bar['close']))

    for rule in rules:
        if evaluate_exit_rule(
            rule, position, current_bar, previous_bar, window, opposing_signal_exits
        ) is Signal.EXIT:
            return 'exit_rule'
    return None
