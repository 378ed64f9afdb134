"""
Module ORM Registry (``recon_modules._orm_registry``).

Ensures every ORM model is imported so that ``Base.metadata`` contains its
table definition before ``create_tables()`` runs.  Kernel models are
registered first; module ORM models may reference them.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``recon_modules.*.orm`` module (idempotent)."""
    import recon_kernel.models  # noqa: F401
    import recon_modules.cycle_count.orm  # noqa: F401

