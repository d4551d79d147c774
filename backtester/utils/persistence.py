"""
JSON and YAML document helpers.

Stored strategies and backtest results are plain documents on disk.
This module provides the small load/save functions the repositories
build on.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional
import yaml


def load_json(path: str) -> Optional[Dict[str, Any]]:
    """Load a JSON document.

    Returns
    -------
    dict or None
        The document if the file exists, otherwise `None`.
    """
    file_path = Path(path)
    if not file_path.exists():
        return None
    with file_path.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def save_json(path: str, document: Dict[str, Any]) -> None:
    """Write a JSON document to disk, creating parent directories."""
    file_path = Path(path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    with file_path.open("w", encoding="utf-8") as fh:
        json.dump(document, fh, ensure_ascii=False, indent=2, sort_keys=True)


def load_yaml(path: str) -> Optional[Dict[str, Any]]:
    """Load a YAML mapping, or `None` if the file does not exist."""
    file_path = Path(path)
    if not file_path.exists():
        return None
    with file_path.open("r", encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


def save_yaml(path: str, document: Dict[str, Any]) -> None:
    file_path = Path(path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    with file_path.open("w", encoding="utf-8") as fh:
        yaml.safe_dump(document, fh, sort_keys=True, allow_unicode=True)
