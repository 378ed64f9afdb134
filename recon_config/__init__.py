"""
recon_config -- single public entrypoint for runtime configuration.

Responsibility:
    Provides the way to obtain configuration at runtime through
    ``get_active_config()``.  Other components do not read configuration
    files or environment variables directly.

Architecture position:
    Configuration -- sits above ``recon_kernel`` and beside
    ``recon_modules``.  The kernel never imports from ``recon_config``.

Resolution order:
    1. An explicit ``path`` argument.
    2. The file named by ``RECON_CONFIG``.
    3. Built-in defaults, with ``DATABASE_URL`` overriding the database.

Failure modes:
    - ``FileNotFoundError`` -- an explicit or ``RECON_CONFIG`` path is missing.
    - ``ValueError`` -- schema validation failures (including an invalid
      ``cycle_count`` section).
"""

from __future__ import annotations

import os
from pathlib import Path

from recon_config.loader import load_yaml_file, parse_config
from recon_config.schema import DEFAULT_DATABASE_URL, ReconConfig
from recon_kernel.logging_config import get_logger
from recon_modules.cycle_count.config import CycleCountConfig

logger = get_logger("config")

CONFIG_ENV_VAR = "RECON_CONFIG"
DATABASE_URL_ENV_VAR = "DATABASE_URL"


def load_config(path: Path | str) -> ReconConfig:
    """Load and validate one YAML configuration file."""
    path = Path(path)
    config = parse_config(load_yaml_file(path), source=str(path))
    # Fail early on a bad cycle_count section.
    cycle_count_config(config)
    return config


def get_active_config(path: Path | str | None = None) -> ReconConfig:
    """
    The configuration entrypoint.

    Emits a ``RECON_CONFIG_TRACE`` log entry naming the source and the
    database backend.
    """
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if path is not None:
        config = load_config(path)
    elif env_path:
        config = load_config(env_path)
    else:
        config = ReconConfig(
            database_url=os.environ.get(DATABASE_URL_ENV_VAR) or DEFAULT_DATABASE_URL,
        )

    logger.info(
        "RECON_CONFIG_TRACE",
        extra={
            "trace_type": "RECON_CONFIG_TRACE",
            "source": config.source or "defaults",
            "database_backend": config.database_url.split(":", 1)[0],
            "log_level": config.log_level,
            "cycle_count_keys": sorted(config.cycle_count),
        },
    )
    return config


def cycle_count_config(config: ReconConfig) -> CycleCountConfig:
    """Build the validated ``CycleCountConfig`` from a ``ReconConfig``."""
    return CycleCountConfig.from_dict(dict(config.cycle_count))


__all__ = [
    "ReconConfig",
    "CONFIG_ENV_VAR",
    "DATABASE_URL_ENV_VAR",
    "cycle_count_config",
    "get_active_config",
    "load_config",
]
