"""Engine configuration: defaults merged with an optional ``sheetcalc.yaml``."""

from __future__ import annotations

import random
from pathlib import Path
from typing import Any

import yaml

CONFIG_FILENAME = "sheetcalc.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "strict_references": False,
    "random_seed": None,
    "log_dir": None,
    "logging_fsync": False,
}


def load_config(path: Path | None = None) -> dict[str, Any]:
    """Load configuration from a yaml file, with defaults.

    Args:
        path: A yaml file, or a directory containing ``sheetcalc.yaml``.
            ``None`` or a missing file yields the defaults.

    Returns:
        Merged configuration dict.

    Raises:
        ValueError: On unknown keys or a non-mapping document.
    """
    config = dict(DEFAULT_CONFIG)
    if path is None:
        return config
    path = Path(path)
    if path.is_dir():
        path = path / CONFIG_FILENAME
    if not path.exists():
        return config

    user_config = yaml.safe_load(path.read_text()) or {}
    if not isinstance(user_config, dict):
        raise ValueError(f"{path}: expected a mapping, got {type(user_config).__name__}")
    unknown = sorted(set(user_config) - set(DEFAULT_CONFIG))
    if unknown:
        raise ValueError(f"{path}: unknown config keys {unknown}. Known: {sorted(DEFAULT_CONFIG)}")
    config.update(user_config)
    return config


def make_rng(config: dict[str, Any]) -> Any:
    """Random source for a config: seeded ``random.Random`` or ``None`` for the default."""
    seed = config.get("random_seed")
    if seed is None:
        return None
    return random.Random(seed)
