"""Project-level configuration.

A project is a directory holding sheet files and an optional
``gridcalc.yaml``; event logs are written under ``<project>/logs``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

CONFIG_FILENAME = "gridcalc.yaml"

DEFAULT_CONFIG = {
    "default_rows": 100,
    "default_cols": 26,
    "enforce_bounds": True,
    "logging_enabled": True,
    "logging_fsync": False,
    "logging_tail_bytes": 2_097_152,  # 2 MB
}


def _flatten_logging_block(user_config: dict[str, Any]) -> dict[str, Any]:
    """Flatten a nested ``logging:`` block into flat config keys.

    Supports::

        logging:
          enabled: true
          fsync: false
          tail_bytes: 1048576

    Maps to ``logging_enabled``, ``logging_fsync``, ``logging_tail_bytes``.
    """
    block = user_config.pop("logging", None)
    if not isinstance(block, dict):
        return user_config
    for key, value in block.items():
        user_config.setdefault(f"logging_{key}", value)
    return user_config


def load_project_config(project_dir: Path) -> dict[str, Any]:
    """Load project configuration from ``gridcalc.yaml``, with defaults.

    Args:
        project_dir: Root of the project.

    Returns:
        Merged configuration dict.

    Raises:
        ValueError: If the config file is not a YAML mapping or a
            dimension is not a positive integer.
    """
    config = dict(DEFAULT_CONFIG)
    config_path = Path(project_dir) / CONFIG_FILENAME
    if config_path.exists():
        user_config = yaml.safe_load(config_path.read_text()) or {}
        if not isinstance(user_config, dict):
            raise ValueError(f"{CONFIG_FILENAME} must contain a mapping")
        config.update(_flatten_logging_block(user_config))

    for key in ("default_rows", "default_cols"):
        value = config[key]
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ValueError(f"{key} must be a positive integer, got {value!r}")

    return config


def configure_logging(project_dir: Path, config: dict[str, Any] | None = None) -> None:
    """Point the event sink at *project_dir* according to *config*."""
    from gridcalc.logging import reset_log_dir, set_log_dir

    cfg = config if config is not None else load_project_config(project_dir)
    if not cfg.get("logging_enabled", True):
        reset_log_dir()
        return
    tail_bytes = cfg.get("logging_tail_bytes")
    set_log_dir(
        project_dir,
        fsync=bool(cfg.get("logging_fsync", False)),
        tail_bytes=int(tail_bytes) if tail_bytes is not None else None,
    )
