"""
Reconciliation Kernel

Shared persistence and domain infrastructure for inventory cycle counts:
- Materials catalog with compare-and-swap on-hand writes
- Append-only inventory ledger
- Typed exceptions, structured logging, injectable clock
"""

__version__ = "0.1.0"
