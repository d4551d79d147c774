"""
CSV bar store.

This module provides a class to load historical OHLCV data from CSV
files.  The expected schema for each CSV is:

```
time,open,high,low,close,volume,timeframe
```

The time column may also be called `timestamp`.  `volume` defaults to
0 when absent.  When a `timeframe` column is present, one file can hold
several bar periods for the same symbol and `load_range()` keeps only
the requested one.  Timestamps without an offset are interpreted in the
configured timezone.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional
import pandas as pd

from ..errors import InputError, InsufficientDataError
from ..utils.timeutils import parse_range_bound


logger = logging.getLogger(__name__)

PRICE_COLUMNS = ['open', 'high', 'low', 'close']


class CSVDataLoader:
    """Load OHLCV data from CSV files for backtesting.

    Parameters
    ----------
    csv_dir : str
        Directory where the CSV files are located.  Each symbol's file
        must be named `{SYMBOL}.csv`.
    timezone : str
        IANA timezone name used to localise timestamps.
    """

    def __init__(self, csv_dir: str, timezone: str = "UTC") -> None:
        self.csv_dir = Path(csv_dir)
        self.timezone = timezone

    def path_for(self, symbol: str) -> Path:
        return self.csv_dir / f"{symbol}.csv"

    def load(self, symbol: str) -> pd.DataFrame:
        """Load every bar stored for `symbol`, sorted by time."""
        file_path = self.path_for(symbol)
        if not file_path.exists():
            raise InsufficientDataError(f"No historical data for symbol {symbol}: {file_path}")

        df = pd.read_csv(file_path)
        df.columns = [str(c).strip().lower() for c in df.columns]

        time_col = 'time' if 'time' in df.columns else 'timestamp'
        missing = [c for c in [time_col] + PRICE_COLUMNS if c not in df.columns]
        if missing:
            raise InputError(
                f"Unrecognized CSV format for {symbol}. Missing columns: {missing}. "
                f"Found columns: {list(df.columns)}"
            )

        try:
            df[time_col] = pd.to_datetime(df[time_col], format="ISO8601", errors="raise")
            df = df.set_index(time_col).sort_index()
            if df.index.tz is None:
                df.index = df.index.tz_localize(self.timezone)
            else:
                df.index = df.index.tz_convert(self.timezone)
        except (TypeError, ValueError) as exc:
            raise InputError(f"Invalid timestamp in {file_path}: {exc}") from exc
        if df.index.hasnans:
            raise InputError(f"Missing timestamp in {file_path}")
        df.index.name = 'timestamp'

        try:
            for col in PRICE_COLUMNS:
                df[col] = df[col].astype(float)
            df['volume'] = df['volume'].astype(float) if 'volume' in df.columns else 0.0
        except (TypeError, ValueError) as exc:
            raise InputError(f"Non-numeric price or volume in {file_path}: {exc}") from exc
        return df

    def load_range(
        self,
        symbol: str,
        timeframe: Optional[str] = None,
        start: Any = None,
        end: Any = None,
    ) -> pd.DataFrame:
        """Load bars for `symbol` within ``[start, end]`` for one timeframe.

        Raises
        ------
        InsufficientDataError
            If no bar matches the filters.
        InputError
            If the range bounds cannot be parsed or a matching bar has a
            missing or non-positive price.
        """
        try:
            start_ts = parse_range_bound(start, self.timezone) if start is not None else None
            end_ts = parse_range_bound(end, self.timezone, end=True) if end is not None else None
        except (TypeError, ValueError) as exc:
            raise InputError(f"Invalid date range {start!r} - {end!r}: {exc}") from exc

        df = self.load(symbol)

        if timeframe is not None and 'timeframe' in df.columns:
            df = df[df['timeframe'].astype(str) == str(timeframe)]
        if start_ts is not None:
            df = df[df.index >= start_ts]
        if end_ts is not None:
            df = df[df.index <= end_ts]

        if df.index.has_duplicates:
            logger.warning("Dropping %d duplicate timestamps for %s", int(df.index.duplicated().sum()), symbol)
            df = df[~df.index.duplicated(keep='last')]

        if df.empty:
            raise InsufficientDataError(
                f"Insufficient historical data for backtest: no {timeframe or ''} bars for {symbol} "
                f"between {start} and {end}"
            )

        bad = df[PRICE_COLUMNS].isna().any(axis=1) | (df[PRICE_COLUMNS] <= 0).any(axis=1)
        if bad.any():
            raise InputError(
                f"Missing or non-positive prices for {symbol} at {[str(ts) for ts in df.index[bad.to_numpy()][:5]]}"
            )
        logger.debug("Loaded %d bars for %s", len(df), symbol)
        return df[PRICE_COLUMNS + ['volume']]
