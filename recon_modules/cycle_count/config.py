"""
Cycle Count Configuration Schema.

Defines the structure and defaults for cycle-count settings.  Values can be
overridden from the ``cycle_count`` section of a YAML config file (see
``recon_config``).
"""

from dataclasses import dataclass, fields
from typing import Any, Self

from recon_kernel.logging_config import get_logger

logger = get_logger("modules.cycle_count.config")


VALID_CONCURRENCY_MODES = {"optimistic", "pessimistic"}


@dataclass
class CycleCountConfig:
    """
    Configuration schema for the cycle-count module.

        config = CycleCountConfig(
            reason_required_above_percent=15,
            concurrency_mode="pessimistic",
        )
    """

    # Approval gate
    reason_required_above_percent: int = 10

    # Display classification
    minor_variance_percent: int = 5

    # Posting
    max_posting_attempts: int = 3
    concurrency_mode: str = "optimistic"  # "optimistic" (CAS), "pessimistic" (row lock)

    # Counting
    clear_approval_on_recount: bool = True

    # Session numbering
    session_number_prefix: str = "CNT"

    # Reporting
    currency: str = "USD"

    def __post_init__(self):
        if self.reason_required_above_percent < 0:
            raise ValueError("reason_required_above_percent cannot be negative")
        if self.minor_variance_percent < 0:
            raise ValueError("minor_variance_percent cannot be negative")
        if self.max_posting_attempts < 1:
            raise ValueError("max_posting_attempts must be at least 1")
        if self.concurrency_mode not in VALID_CONCURRENCY_MODES:
            raise ValueError(
                f"concurrency_mode must be one of {VALID_CONCURRENCY_MODES}, "
                f"got '{self.concurrency_mode}'"
            )
        if not self.session_number_prefix or "-" in self.session_number_prefix:
            raise ValueError("session_number_prefix must be non-empty and contain no '-'")
        if len(self.currency) != 3:
            raise ValueError(f"currency must be a 3-letter ISO code, got '{self.currency}'")

        logger.debug(
            "cycle_count_config_initialized",
            extra={
                "reason_required_above_percent": self.reason_required_above_percent,
                "minor_variance_percent": self.minor_variance_percent,
                "max_posting_attempts": self.max_posting_attempts,
                "concurrency_mode": self.concurrency_mode,
            },
        )

    @property
    def pessimistic(self) -> bool:
        return self.concurrency_mode == "pessimistic"

    @classmethod
    def with_defaults(cls) -> Self:
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Create config from a mapping (e.g. the YAML ``cycle_count`` section)."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown cycle_count settings: {unknown}")
        logger.info(
            "cycle_count_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)
