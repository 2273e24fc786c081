#!/usr/bin/env python3
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict

_BASE_DIR = Path(__file__).resolve().parent
# PROVINCE_SIM_CONFIG points at an alternative map/nation layout
_CONFIG_PATH = Path(os.environ.get("PROVINCE_SIM_CONFIG", _BASE_DIR / "config" / "sim_config.json"))


def _load_config(path: Path = _CONFIG_PATH) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must hold a JSON object, got {type(data).__name__}.")
    if not isinstance(data.get("nations", {}), dict):
        raise ValueError(f"Config file {path}: 'nations' must map nation ids to settings.")
    return data


SIM_CONFIG: Dict[str, Any] = _load_config()
