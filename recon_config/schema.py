"""
ReconConfig schema.

The runtime configuration artifact: where the database lives, how loud the
logs are, and the raw ``cycle_count`` section that ``CycleCountConfig``
validates.  YAML files are parsed into this type by the loader.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

DEFAULT_DATABASE_URL = "sqlite://"
DEFAULT_LOG_LEVEL = "INFO"

VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass(frozen=True)
class ReconConfig:
    """Top-level configuration."""

    database_url: str = DEFAULT_DATABASE_URL
    log_level: str = DEFAULT_LOG_LEVEL
    cycle_count: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    source: str | None = None  # file path, or None for defaults

    def __post_init__(self) -> None:
        if not self.database_url:
            raise ValueError("database_url cannot be empty")
        if self.log_level.upper() not in VALID_LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {sorted(VALID_LOG_LEVELS)}, got '{self.log_level}'"
            )
        object.__setattr__(self, "log_level", self.log_level.upper())
        object.__setattr__(self, "cycle_count", MappingProxyType(dict(self.cycle_count)))
