from __future__ import annotations
from typing import Any, Dict, List
from pathlib import Path
import copy
import sys

import yaml

from .heuristics import SERVICE_MATCH_MODES

DEFAULT_CONFIG: Dict[str, Any] = {
    # policy thresholds
    "stale_days": 90,
    "restart_threshold": 5,
    "suspicious_dirs": ["/tmp", "/var/tmp", "/dev/shm"],
    "service_match": "fuzzy",   # fuzzy | exact
    # collector health classification (percent), cpu sampled over cpu_sample seconds
    "cpu_high": 90.0,
    "mem_high": 80.0,
    "cpu_sample": 0.1,
    # extra launcher names per source category; defaults are always kept
    "sources": {
        "supervisor": [],
        "cron": [],
        "shell": [],
    },
}


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]


def validate_config(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Coerce known keys to their types. Raises ValueError on values that cannot be used."""
    for key in ("stale_days", "restart_threshold"):
        try:
            cfg[key] = int(cfg[key])
        except (TypeError, ValueError):
            raise ValueError(f"{key} must be an integer, got {cfg[key]!r}") from None
    for key in ("cpu_high", "mem_high", "cpu_sample"):
        try:
            cfg[key] = float(cfg[key])
        except (TypeError, ValueError):
            raise ValueError(f"{key} must be a number, got {cfg[key]!r}") from None
    if cfg["service_match"] not in SERVICE_MATCH_MODES:
        raise ValueError(f"service_match must be one of {SERVICE_MATCH_MODES}, got {cfg['service_match']!r}")
    cfg["suspicious_dirs"] = _as_list(cfg["suspicious_dirs"])
    return cfg


def load_config(path: str | None) -> Dict[str, Any]:
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    if not path:
        return cfg
    try:
        data = yaml.safe_load(Path(path).read_text()) or {}
        if not isinstance(data, dict):
            raise ValueError("top-level YAML must be a mapping")
        # shallow merge, then per-category merge of sources
        src_default = cfg["sources"]
        src_user = data.get("sources") or {}
        cfg.update({k: v for k, v in data.items() if k != "sources"})
        for category, names in src_user.items():
            src_default[category] = _as_list(names)
        cfg["sources"] = src_default
        validate_config(cfg)
        print(f"Loaded config from {path}", file=sys.stderr)
    except (OSError, yaml.YAMLError, ValueError, TypeError, AttributeError) as e:
        print(f"Warning: Could not load config {path}: {e}", file=sys.stderr)
        cfg = copy.deepcopy(DEFAULT_CONFIG)
    return cfg
