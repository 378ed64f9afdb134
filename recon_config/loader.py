"""
Configuration Loader (``recon_config.loader``).

Responsibility
--------------
Reads a YAML file and parses it into a ``ReconConfig``.  Callers go through
``recon_config.get_active_config()`` or ``recon_config.load_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown top-level keys or a non-mapping section  -> ``ValueError``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from recon_config.schema import DEFAULT_DATABASE_URL, DEFAULT_LOG_LEVEL, ReconConfig

_TOP_LEVEL_KEYS = frozenset({"database_url", "log_level", "cycle_count"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top-level YAML must be a mapping")
    return data


def parse_config(data: dict[str, Any], source: str | None = None) -> ReconConfig:
    """Parse a ``ReconConfig`` from a dict."""
    unknown = sorted(set(data) - _TOP_LEVEL_KEYS)
    if unknown:
        raise ValueError(f"Unknown configuration keys: {unknown}")

    cycle_count = data.get("cycle_count") or {}
    if not isinstance(cycle_count, dict):
        raise ValueError("'cycle_count' must be a mapping")

    return ReconConfig(
        database_url=str(data.get("database_url") or DEFAULT_DATABASE_URL),
        log_level=str(data.get("log_level") or DEFAULT_LOG_LEVEL),
        cycle_count=cycle_count,
        source=source,
    )
