"""
Flush-time guards for rows that must not change once written.

Rules:

    InventoryLedgerEntry   never updated, never deleted
    CountSession           frozen once its stored status is ``posted``;
                           only ``updated_at`` / ``updated_by`` may move
    CountItem              frozen while its session is ``posted``

The guards are ``before_update`` / ``before_delete`` mapper events, so they
fire during ``Session.flush()`` and abort it with
``ImmutabilityViolationError`` before any SQL is sent.  Core ``UPDATE``
statements do not pass through mapper events; the posting engine's
conditional claim of the session row is the only such write.

Call ``register_immutability_listeners()`` once at startup.  Tests that need
to corrupt a row on purpose can ``unregister_immutability_listeners()``.
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from recon_kernel.exceptions import ImmutabilityViolationError
from recon_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_POSTED = "posted"
_AUDIT_FIELDS = frozenset({"updated_at", "updated_by"})


def _reject(entity_type: str, target, operation: str, reason: str, **extra) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
            **extra,
        },
    )
    raise ImmutabilityViolationError(entity_type, str(target.id), reason)


def _is_posted(status) -> bool:
    return getattr(status, "value", status) == _POSTED


def _stored_as_posted(session_row) -> bool:
    """Whether the row was already posted before the pending changes."""
    history = get_history(session_row, "status")
    if history.deleted:
        return _is_posted(history.deleted[0])
    if history.added:
        return False
    return _is_posted(session_row.status)


def _parent_posted(item) -> bool:
    parent = item.count_session
    return parent is not None and _is_posted(parent.status)


# ledger entries


def _ledger_update(mapper, connection, target):
    _reject("InventoryLedgerEntry", target, "UPDATE", "ledger entries are append-only")


def _ledger_delete(mapper, connection, target):
    _reject("InventoryLedgerEntry", target, "DELETE", "ledger entries are append-only")


# count sessions


def _session_update(mapper, connection, target):
    if not _stored_as_posted(target):
        return
    changed = [
        attr.key
        for attr in inspect(target).attrs
        if attr.key not in _AUDIT_FIELDS and attr.history.has_changes()
    ]
    if changed:
        _reject(
            "CountSession",
            target,
            "UPDATE",
            f"field '{changed[0]}' of a posted count session is frozen",
            field=changed[0],
        )


def _session_delete(mapper, connection, target):
    if _is_posted(target.status):
        _reject("CountSession", target, "DELETE", "a posted count session is kept")


# count lines


def _item_update(mapper, connection, target):
    if _parent_posted(target):
        _reject("CountItem", target, "UPDATE", "lines of a posted count session are frozen")


def _item_delete(mapper, connection, target):
    if _parent_posted(target):
        _reject("CountItem", target, "DELETE", "lines of a posted count session are kept")


def _listeners():
    from recon_kernel.models.inventory_ledger import InventoryLedgerEntryModel
    from recon_modules.cycle_count.orm import CountItemModel, CountSessionModel

    return (
        (InventoryLedgerEntryModel, "before_update", _ledger_update),
        (InventoryLedgerEntryModel, "before_delete", _ledger_delete),
        (CountSessionModel, "before_update", _session_update),
        (CountSessionModel, "before_delete", _session_delete),
        (CountItemModel, "before_update", _item_update),
        (CountItemModel, "before_delete", _item_delete),
    )


def register_immutability_listeners() -> None:
    """Install the guards.  Repeated calls are no-ops."""
    for model, name, fn in _listeners():
        if not event.contains(model, name, fn):
            event.listen(model, name, fn)


def unregister_immutability_listeners() -> None:
    for model, name, fn in _listeners():
        if event.contains(model, name, fn):
            event.remove(model, name, fn)
