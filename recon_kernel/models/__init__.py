"""Kernel-owned ORM models: the materials catalog and the inventory ledger."""

from recon_kernel.models.inventory_ledger import InventoryLedgerEntryModel
from recon_kernel.models.material import MaterialModel

__all__ = [
    "MaterialModel",
    "InventoryLedgerEntryModel",
]
