"""
Configuration schema and loader.

This module defines dataclasses that mirror the expected structure of
the YAML configuration file (`config.yaml`).  A helper function
`load_config()` reads a YAML file from disk and returns an instance
of `Config` populated with defaults for any missing fields.

Strategies themselves are not part of this file; they live in the
strategy store referenced by `storage.strategies_file`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Any
import yaml


# Fraction of entry rules that must agree on a direction before a
# position is opened.
ENTRY_CONSENSUS_RATIO = 0.6

# Trailing bars handed to the rule evaluator on each step.
LOOKBACK_BARS = 20

# Trading days per year used to annualise the Sharpe ratio.
TRADING_DAYS_PER_YEAR = 252


@dataclass
class DataConfig:
    """Historical data source configuration.

    Attributes
    ----------
    csv_dir : str
        Directory containing one CSV file per symbol (``{SYMBOL}.csv``).
    timezone : str
        IANA timezone name used to localise naive timestamps.
    """

    csv_dir: str = "data"
    timezone: str = "UTC"


@dataclass
class StorageConfig:
    """Where strategy definitions are read from and results written to.

    Attributes
    ----------
    strategies_file : str
        YAML file mapping strategy ids to strategy definitions.
    results_dir : str
        Directory holding one JSON document per completed run.
    """

    strategies_file: str = "strategies.yaml"
    results_dir: str = "results/runs"


@dataclass
class EngineConfig:
    """Simulation parameters shared by every run.

    Attributes
    ----------
    initial_capital : float
        Starting cash when the caller does not supply one.
    lookback_bars : int
        Maximum number of trailing bars passed to rule evaluation.
    entry_consensus_ratio : float
        Fraction of entry rules that must vote for a direction.
    annualization_factor : int
        Periods per year used for the Sharpe ratio.
    close_open_position_at_end : bool
        When true, a position still open at the final bar is closed and
        recorded as a trade.  By default it is only marked to market
        into the final capital.
    release_position_cash : bool
        When true, closing a position returns its committed cash plus
        the P&L and equity marks a short by its unrealised P&L.  By
        default cash is only adjusted by the P&L on exit and equity is
        ``cash + quantity * close`` for either side.
    opposing_signal_exits : bool
        When true, an exit rule fires when its directional signal
        opposes the open position.  By default only an explicit exit
        signal closes a position.
    """

    initial_capital: float = 10_000.0
    lookback_bars: int = LOOKBACK_BARS
    entry_consensus_ratio: float = ENTRY_CONSENSUS_RATIO
    annualization_factor: int = TRADING_DAYS_PER_YEAR
    close_open_position_at_end: bool = False
    release_position_cash: bool = False
    opposing_signal_exits: bool = False


@dataclass
class ReportConfig:
    """Report output settings."""

    out_dir: str = "results"
    plot: bool = True


@dataclass
class Config:
    """Root configuration for the backtester."""

    data: DataConfig = field(default_factory=DataConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    report: ReportConfig = field(default_factory=ReportConfig)


def _merge_dict(defaults: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge two dictionaries.

    The values in `override` take precedence over those in `defaults`.
    """
    result: Dict[str, Any] = defaults.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _merge_dict(result[key], value)
        else:
            result[key] = value
    return result


def load_config(path: str) -> Config:
    """Load a configuration file from the given YAML path.

    Parameters
    ----------
    path : str
        Path to the YAML file.

    Returns
    -------
    Config
        A populated configuration object.  Missing fields are filled with
        the defaults defined in the dataclasses.
    """
    with open(path, "r", encoding="utf-8") as fh:
        raw: Dict[str, Any] = yaml.safe_load(fh) or {}

    defaults: Dict[str, Any] = {
        'data': {
            'csv_dir': 'data',
            'timezone': 'UTC',
        },
        'storage': {
            'strategies_file': 'strategies.yaml',
            'results_dir': 'results/runs',
        },
        'engine': {
            'initial_capital': 10_000.0,
            'lookback_bars': LOOKBACK_BARS,
            'entry_consensus_ratio': ENTRY_CONSENSUS_RATIO,
            'annualization_factor': TRADING_DAYS_PER_YEAR,
            'close_open_position_at_end': False,
            'release_position_cash': False,
            'opposing_signal_exits': False,
        },
        'report': {
            'out_dir': 'results',
            'plot': True,
        },
    }

    merged = _merge_dict(defaults, raw)

    engine = merged['engine']
    engine_cfg = EngineConfig(
        initial_capital=float(engine['initial_capital']),
        lookback_bars=int(engine['lookback_bars']),
        entry_consensus_ratio=float(engine['entry_consensus_ratio']),
        annualization_factor=int(engine['annualization_factor']),
        close_open_position_at_end=bool(engine['close_open_position_at_end']),
        release_position_cash=bool(engine['release_position_cash']),
        opposing_signal_exits=bool(engine['opposing_signal_exits']),
    )

    return Config(
        data=DataConfig(**merged['data']),
        storage=StorageConfig(**merged['storage']),
        engine=engine_cfg,
        report=ReportConfig(**merged['report']),
    )
