"""
SqlMaterialCatalog -- materials catalog read and compare-and-swap write.

Responsibility:
    The narrow interface between the count workflow and the item master:
    filtered search for the item selector, bulk lookup for snapshotting
    ``system_quantity``, a fresh (optionally locked) read at posting time,
    and the single mutating call ``adjust_on_hand``.

Architecture position:
    Kernel > Services -- imperative shell.  Works inside the caller's
    transaction (see BaseService).

Invariants enforced:
    - ``adjust_on_hand`` is a conditional UPDATE on ``(id, version)``.  It
      either moves ``on_hand_quantity`` by exactly ``delta`` and bumps
      ``version`` by one, or changes nothing and raises.
    - Every read refreshes the identity map, so neither a snapshot nor a
      posting step works from a stale in-memory quantity.

Failure modes:
    - MaterialNotFoundError for unknown ids.
    - OptimisticLockError when ``expected_version`` no longer matches.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import or_, select, update

from recon_kernel.domain.dtos import Material
from recon_kernel.exceptions import MaterialNotFoundError, OptimisticLockError
from recon_kernel.logging_config import get_logger
from recon_kernel.models.material import MaterialModel
from recon_kernel.services.base import BaseService

logger = get_logger("services.material_catalog")


class SqlMaterialCatalog(BaseService):
    """Materials catalog backed by the ``materials`` table."""

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def search(
        self,
        department_code: str | None = None,
        location: str | None = None,
        category: str | None = None,
        text: str | None = None,
    ) -> list[Material]:
        """
        Return materials matching every supplied filter.

        ``text`` is a case-insensitive substring match over SKU, name and
        material number.  Results are ordered by material number.
        """
        stmt = select(MaterialModel).execution_options(populate_existing=True)
        if department_code:
            stmt = stmt.where(MaterialModel.department_code == department_code)
        if location:
            stmt = stmt.where(MaterialModel.location == location)
        if category:
            stmt = stmt.where(MaterialModel.category == category)
        if text and text.strip():
            needle = text.strip()
            stmt = stmt.where(
                or_(
                    MaterialModel.sku.icontains(needle, autoescape=True),
                    MaterialModel.name.icontains(needle, autoescape=True),
                    MaterialModel.material_number.icontains(needle, autoescape=True),
                )
            )
        stmt = stmt.order_by(MaterialModel.material_number)
        return [row.to_dto() for row in self.session.scalars(stmt)]

    def get_materials(self, material_ids: Sequence[UUID]) -> list[Material]:
        """
        Bulk lookup, returned in the order requested.

        Raises:
            MaterialNotFoundError: listing every id that does not exist.
        """
        if not material_ids:
            return []
        rows = self.session.scalars(
            select(MaterialModel)
            .where(MaterialModel.id.in_(list(material_ids)))
            .execution_options(populate_existing=True)
        ).all()
        by_id = {row.id: row for row in rows}
        missing = [str(mid) for mid in material_ids if mid not in by_id]
        if missing:
            raise MaterialNotFoundError(missing)
        return [by_id[mid].to_dto() for mid in material_ids]

    def get_material(self, material_id: UUID) -> Material:
        return self.get_materials([material_id])[0]

    def read_current(self, material_id: UUID, lock: bool = False) -> Material:
        """
        Fresh read of one material for the posting step.

        ``lock=True`` takes a row lock (SELECT ... FOR UPDATE) held until the
        caller's transaction ends.  Backends without row locks ignore it.
        """
        stmt = (
            select(MaterialModel)
            .where(MaterialModel.id == material_id)
            .execution_options(populate_existing=True)
        )
        if lock:
            stmt = stmt.with_for_update()
        row = self.session.scalars(stmt).one_or_none()
        if row is None:
            raise MaterialNotFoundError([str(material_id)])
        return row.to_dto()

    def distinct_departments(self) -> list[str]:
        return self._distinct(MaterialModel.department_code)

    def distinct_locations(self) -> list[str]:
        return self._distinct(MaterialModel.location)

    def distinct_categories(self) -> list[str]:
        return self._distinct(MaterialModel.category)

    def _distinct(self, column) -> list[str]:
        stmt = select(column).where(column.is_not(None)).distinct().order_by(column)
        return [value for value in self.session.scalars(stmt) if value]

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def adjust_on_hand(
        self,
        material_id: UUID,
        delta: Decimal,
        expected_version: int,
        counted_at: datetime | None = None,
    ) -> Decimal:
        """
        Move ``on_hand_quantity`` by ``delta`` if ``version`` still matches.

        Returns:
            The new on-hand quantity.

        Raises:
            OptimisticLockError: the row changed since ``expected_version``
                was read (or no longer exists).
        """
        values = {
            "on_hand_quantity": MaterialModel.on_hand_quantity + delta,
            "version": MaterialModel.version + 1,
        }
        if counted_at is not None:
            values["last_counted_at"] = counted_at

        result = self.session.execute(
            update(MaterialModel)
            .where(
                MaterialModel.id == material_id,
                MaterialModel.version == expected_version,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.info(
                "on_hand_cas_rejected",
                extra={
                    "material_id": str(material_id),
                    "expected_version": expected_version,
                },
            )
            raise OptimisticLockError("Material", str(material_id))

        new_quantity = self.session.scalar(
            select(MaterialModel.on_hand_quantity).where(MaterialModel.id == material_id)
        )
        logger.debug(
            "on_hand_adjusted",
            extra={
                "material_id": str(material_id),
                "delta": delta,
                "new_quantity": new_quantity,
                "version": expected_version + 1,
            },
        )
        return new_quantity
