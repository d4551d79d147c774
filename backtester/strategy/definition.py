"""
Strategy definition.

A `Strategy` is the immutable input of a backtest run: the bar
timeframe it trades on, its ordered entry and exit rules and the risk
limits used to size positions and place stop-loss / take-profit
levels.  Definitions are stored as plain mappings (see
`storage.repository.StrategyRepository`) and converted here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from ..errors import InputError
from .rules import Rule, parse_rule, rule_to_dict


@dataclass(frozen=True)
class RiskRules:
    """Risk limits, all expressed in percent.

    Attributes
    ----------
    stop_loss_percent : float
        Distance of the stop-loss from the entry price (e.g. 2 = 2 %).
    take_profit_percent : float
        Distance of the take-profit from the entry price.
    max_position_percent : float
        Share of available cash committed to a new position.
    """

    stop_loss_percent: float = 2.0
    take_profit_percent: float = 5.0
    max_position_percent: float = 10.0

    @classmethod
    def from_dict(cls, raw: Optional[Mapping[str, Any]]) -> "RiskRules":
        """Build risk rules, applying defaults only to absent values.

        An explicit 0 is kept as 0; a strategy with
        ``max_position_percent: 0`` therefore never trades.
        """
        raw = raw or {}
        values: Dict[str, float] = {}
        for name in ('stop_loss_percent', 'take_profit_percent', 'max_position_percent'):
            value = raw.get(name)
            if value is None:
                continue
            try:
                values[name] = float(value)
            except (TypeError, ValueError) as exc:
                raise InputError(f"Invalid risk rule {name}: {value!r}") from exc
            if values[name] < 0:
                raise InputError(f"Risk rule {name} must not be negative")
        return cls(**values)

    def levels(self, side: str, entry_price: float) -> Tuple[float, float]:
        """Return ``(stop_loss, take_profit)`` prices for a new position."""
        sl = self.stop_loss_percent / 100.0
        tp = self.take_profit_percent / 100.0
        if side == 'long':
            return entry_price * (1.0 - sl), entry_price * (1.0 + tp)
        return entry_price * (1.0 + sl), entry_price * (1.0 - tp)


def calculate_position_size(capital: float, risk_rules: Union[RiskRules, Mapping[str, Any]]) -> float:
    """Cash to allocate to a new position."""
    if not isinstance(risk_rules, RiskRules):
        risk_rules = RiskRules.from_dict(risk_rules)
    return capital * (risk_rules.max_position_percent / 100.0)


@dataclass(frozen=True)
class Strategy:
    """A declarative trading strategy."""

    id: str
    timeframe: str = "1d"
    entry_rules: Tuple[Rule, ...] = ()
    exit_rules: Tuple[Rule, ...] = ()
    risk_rules: RiskRules = field(default_factory=RiskRules)
    name: str = ""
    symbol: Optional[str] = None

    @classmethod
    def from_dict(cls, strategy_id: str, raw: Mapping[str, Any]) -> "Strategy":
        """Parse a stored strategy definition."""
        if not isinstance(raw, Mapping):
            raise InputError(f"Strategy {strategy_id} must be a mapping")
        return cls(
            id=str(strategy_id),
            name=str(raw.get('name') or strategy_id),
            symbol=raw.get('symbol'),
            timeframe=str(raw.get('timeframe') or '1d'),
            entry_rules=tuple(parse_rule(r) for r in raw.get('entry_rules') or []),
            exit_rules=tuple(parse_rule(r) for r in raw.get('exit_rules') or []),
            risk_rules=RiskRules.from_dict(raw.get('risk_rules')),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'symbol': self.symbol,
            'timeframe': self.timeframe,
            'entry_rules': [rule_to_dict(r) for r in self.entry_rules],
            'exit_rules': [rule_to_dict(r) for r in self.exit_rules],
            'risk_rules': {
                'stop_loss_percent': self.risk_rules.stop_loss_percent,
                'take_profit_percent': self.risk_rules.take_profit_percent,
                'max_position_percent': self.risk_rules.max_position_percent,
            },
        }
