"""
Report generation utilities.

This module turns a backtest result into human-readable artefacts:
CSV files of trades and equity curve, a JSON summary of performance
metrics and a PNG chart of the equity curve.
"""

from __future__ import annotations

import os
import json
from typing import Dict
import pandas as pd
import matplotlib

# Use non-interactive backend for environments without display
matplotlib.use("Agg")
import matplotlib.pyplot as plt

from ..execution.models import BacktestResult


TRADE_COLUMNS = [
    'entry_time', 'exit_time', 'type', 'quantity', 'entry_price',
    'exit_price', 'pnl', 'pnl_percent', 'reason',
]


def generate_backtest_report(
    result: BacktestResult,
    out_dir: str = "results",
    plot: bool = True,
) -> Dict[str, str]:
    """Generate report files for a backtest run.

    Creates the output directory if it does not exist and writes the
    following files:

    - `trades.csv` – detailed list of closed trades
    - `equity_curve.csv` – account equity after each bar
    - `summary.json` – performance metrics
    - `equity_curve.png` – line chart of the equity curve (if `plot`)

    Returns
    -------
    dict
        Mapping of artefact name to the path written.
    """
    os.makedirs(out_dir, exist_ok=True)
    paths: Dict[str, str] = {}

    df_trades = pd.DataFrame([t.to_dict() for t in result.trades_data], columns=TRADE_COLUMNS)
    paths['trades'] = os.path.join(out_dir, 'trades.csv')
    df_trades.to_csv(paths['trades'], index=False)

    df_eq = pd.DataFrame([p.to_dict() for p in result.equity_curve], columns=['timestamp', 'equity'])
    paths['equity_curve'] = os.path.join(out_dir, 'equity_curve.csv')
    df_eq.to_csv(paths['equity_curve'], index=False)

    paths['summary'] = os.path.join(out_dir, 'summary.json')
    with open(paths['summary'], 'w', encoding='utf-8') as fh:
        json.dump(result.summary(), fh, indent=2, ensure_ascii=False)

    if plot:
        fig, ax = plt.subplots(figsize=(10, 4))
        if not df_eq.empty:
            ax.plot(pd.to_datetime(df_eq['timestamp'], utc=True), df_eq['equity'], linewidth=1.5)
            ax.axhline(result.initial_capital, color='grey', linewidth=0.8, linestyle='--')
            ax.set_title('Equity Curve')
            ax.set_xlabel('Time')
            ax.set_ylabel('Equity')
            fig.autofmt_xdate()
        fig.tight_layout()
        paths['plot'] = os.path.join(out_dir, 'equity_curve.png')
        fig.savefig(paths['plot'])
        plt.close(fig)

    return paths
