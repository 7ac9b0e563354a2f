"""Load positions to start at launch from YAML.

Optional file path via env `SX_POSITIONS_FILE`, default `configs/positions.yaml`.
Returns a dict mapping market hash -> start config.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict

import yaml

log = logging.getLogger("sxiceberg")


def load_positions(path: str | None = None) -> Dict[str, Dict[str, Any]]:
    if path is None:
        path = os.getenv("SX_POSITIONS_FILE", "configs/positions.yaml")
    p = Path(path)
    if not p.exists():
        return {}
    try:
        with p.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError) as exc:
        log.warning(f"could not read positions file {p}: {exc}")
        return {}
    if not isinstance(data, dict):
        return {}
    # YAML reads unquoted 0x... keys as ints
    return {k if isinstance(k, str) else f"0x{k:064x}": v for k, v in data.items() if isinstance(v, dict)}
