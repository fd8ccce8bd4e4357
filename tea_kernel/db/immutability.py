"""
ORM-Level Immutability Enforcement for ledger entries.

===============================================================================
WHY THIS EXISTS
===============================================================================

The stock ledger is append-only.  An entry, once written, records what
happened and the balance it produced; the running-balance invariant is only
checkable if nobody rewrites history.  Corrections are new entries.

SQLAlchemy fires events before UPDATE/DELETE statements reach the database.
We register listeners that intercept these events for LedgerEntry:

    session.flush()
         |
         v
    [before_update event] --> ImmutabilityViolationError
         |
         v
    [before_delete event] --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

Entries still disappear when their item is deleted: items are deleted with
a bulk DELETE statement and the database-level ON DELETE CASCADE removes
the entries without going through the ORM unit of work.

===============================================================================
USAGE
===============================================================================

Called once at startup (CollectionApi does this):

    from tea_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
===============================================================================
"""

from sqlalchemy import event

from tea_kernel.exceptions import ImmutabilityViolationError
from tea_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _check_ledger_entry_update(mapper, connection, target):
    """Reject any UPDATE of a flushed LedgerEntry."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "LedgerEntry",
            "entity_id": str(target.id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="LedgerEntry",
        entity_id=str(target.id),
        reason="ledger entries are append-only",
    )


def _check_ledger_entry_delete(mapper, connection, target):
    """Reject ORM-level DELETE of a single LedgerEntry."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "LedgerEntry",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="LedgerEntry",
        entity_id=str(target.id),
        reason="ledger entries are removed only with their item",
    )


_registered = False


def register_immutability_listeners() -> None:
    """Install the LedgerEntry listeners (idempotent)."""
    global _registered
    if _registered:
        return

    from tea_kernel.models.ledger import LedgerEntry

    event.listen(LedgerEntry, "before_update", _check_ledger_entry_update)
    event.listen(LedgerEntry, "before_delete", _check_ledger_entry_delete)
    _registered = True
    logger.debug("immutability_listeners_registered")


def unregister_immutability_listeners() -> None:
    """Remove the LedgerEntry listeners. FOR TESTING ONLY."""
    global _registered
    if not _registered:
        return

    from tea_kernel.models.ledger import LedgerEntry

    event.remove(LedgerEntry, "before_update", _check_ledger_entry_update)
    event.remove(LedgerEntry, "before_delete", _check_ledger_entry_delete)
    _registered = False
