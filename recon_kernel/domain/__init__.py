"""Pure domain value objects: clock and workflow types."""

from recon_kernel.domain.clock import (
    Clock,
    DeterministicClock,
    SystemClock,
)
from recon_kernel.domain.dtos import LedgerEntry, Material
from recon_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "Guard",
    "Transition",
    "Workflow",
    "Material",
    "LedgerEntry",
]
