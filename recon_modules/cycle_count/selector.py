"""
Item Selector (``recon_modules.cycle_count.selector``).

Responsibility
--------------
Filter the materials catalog by scope (all / department / location /
category) and free-text search to produce the candidate set for a new count,
resolve a user's selection to catalog records, and list the filter facets.

Architecture
------------
Layer: **Modules** -- read-only adapter over ``SqlMaterialCatalog``.  Never
writes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence
from uuid import UUID

from recon_kernel.logging_config import get_logger
from recon_kernel.services.material_catalog import SqlMaterialCatalog
from recon_modules.cycle_count.models import Material, ScopeFilter

logger = get_logger("modules.cycle_count.selector")


@dataclass(frozen=True)
class SelectorFacets:
    """Distinct filter values present in the catalog."""

    departments: tuple[str, ...]
    locations: tuple[str, ...]
    categories: tuple[str, ...]


class ItemSelector:
    """Candidate selection for count sessions."""

    def __init__(self, catalog: SqlMaterialCatalog):
        self._catalog = catalog

    def candidates(
        self,
        scope: ScopeFilter,
        search_text: str | None = None,
    ) -> list[Material]:
        """Materials in ``scope`` matching ``search_text`` (SKU, name, number)."""
        materials = self._catalog.search(text=search_text, **scope.search_kwargs())
        logger.debug(
            "count_candidates_selected",
            extra={
                "scope_type": scope.scope_type,
                "scope_value": scope.value,
                "search_text": search_text,
                "candidate_count": len(materials),
            },
        )
        return materials

    def resolve(self, material_ids: Sequence[UUID]) -> list[Material]:
        """
        Catalog records for a selection, first occurrence order, duplicates
        dropped.

        Raises:
            MaterialNotFoundError: for unknown ids.
        """
        unique_ids = list(dict.fromkeys(material_ids))
        return self._catalog.get_materials(unique_ids)

    def facets(self) -> SelectorFacets:
        return SelectorFacets(
            departments=tuple(self._catalog.distinct_departments()),
            locations=tuple(self._catalog.distinct_locations()),
            categories=tuple(self._catalog.distinct_categories()),
        )
