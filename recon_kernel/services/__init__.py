"""Kernel services: imperative shell over the kernel models."""

from recon_kernel.services.material_catalog import SqlMaterialCatalog

__all__ = ["SqlMaterialCatalog"]
