"""
Strategy and result stores.

`StrategyRepository` reads strategy definitions from a YAML file shaped
like::

    strategies:
      ma-trend:
        timeframe: 1d
        entry_rules:
          - type: price_above_ma
            params: {period: 20}
        exit_rules: []
        risk_rules: {stop_loss_percent: 2, take_profit_percent: 5, max_position_percent: 10}

`ResultRepository` keeps one JSON document per completed run.
"""

from __future__ import annotations

import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..errors import StrategyNotFoundError
from ..strategy.definition import Strategy
from ..utils.persistence import load_json, load_yaml, save_json, save_yaml


class StrategyRepository:
    """Strategies stored in a single YAML file."""

    def __init__(self, path: str) -> None:
        self.path = path

    def _load_all(self) -> Dict[str, Any]:
        document = load_yaml(self.path) or {}
        return {str(k): v for k, v in (document.get('strategies') or {}).items()}

    def list_ids(self) -> List[str]:
        return sorted(str(k) for k in self._load_all())

    def get(self, strategy_id: str) -> Strategy:
        """Return the strategy stored under `strategy_id`.

        Raises
        ------
        StrategyNotFoundError
            If the file or the id does not exist.
        InputError
            If the stored definition is malformed.
        """
        strategies = self._load_all()
        raw = strategies.get(strategy_id)
        if raw is None:
            raise StrategyNotFoundError(strategy_id)
        return Strategy.from_dict(strategy_id, raw)

    def save(self, strategy: Strategy) -> None:
        document = load_yaml(self.path) or {}
        strategies = document.setdefault('strategies', {}) or {}
        strategies[strategy.id] = strategy.to_dict()
        document['strategies'] = strategies
        save_yaml(self.path, document)


class ResultRepository:
    """Backtest results stored as ``{results_dir}/{run_id}.json``."""

    def __init__(self, results_dir: str) -> None:
        self.results_dir = Path(results_dir)

    def _path(self, run_id: str) -> Path:
        return self.results_dir / f"{run_id}.json"

    def save(self, record: Dict[str, Any], run_id: Optional[str] = None) -> str:
        """Persist a run record and return its id."""
        run_id = run_id or uuid.uuid4().hex
        document = dict(record)
        document['id'] = run_id
        save_json(str(self._path(run_id)), document)
        return run_id

    def load(self, run_id: str) -> Optional[Dict[str, Any]]:
        return load_json(str(self._path(run_id)))

    def list_ids(self) -> List[str]:
        if not self.results_dir.exists():
            return []
        return sorted(p.stem for p in self.results_dir.glob("*.json"))
