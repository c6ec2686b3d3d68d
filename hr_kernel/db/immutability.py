"""
ORM-Level Immutability Enforcement for confirmed payroll.

===============================================================================
WHY THIS EXISTS
===============================================================================

A confirmed payroll record is history: it is what an employee was paid for a
month.  It is created exactly once per (employee, month) by the confirm step
and must never be edited or deleted afterwards.  Corrections happen in a
later period, not by rewriting this one.

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database.  We register listeners that refuse any such change:

    session.flush()
         |
         v
    [before_update] --> _check_*_immutability() --> ImmutabilityViolationError
    [before_delete] --> _check_*_delete() ---------> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity              | When Immutable  | Why
--------------------|-----------------|------------------------------------
PayrollRecordModel  | ALWAYS          | Confirmed pay for (employee, month)
PayrollRunModel     | ALWAYS          | Batch header of a confirmed run

updated_at / updated_by_id are audit metadata and may still change.

===============================================================================
USAGE
===============================================================================

    from hr_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

    # TESTS ONLY
    unregister_immutability_listeners()
"""

from sqlalchemy import event, inspect

from hr_kernel.exceptions import ImmutabilityViolationError
from hr_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_FIELDS = ("updated_at", "updated_by_id")


def _changed_fields(target) -> list[str]:
    insp = inspect(target)
    return [
        attr.key
        for attr in insp.attrs
        if attr.key not in _AUDIT_FIELDS and attr.history.has_changes()
    ]


def _block_update(entity_type: str, target) -> None:
    changed = _changed_fields(target)
    if not changed:
        return
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": "UPDATE",
            "fields": changed,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=f"Confirmed payroll cannot be modified (fields: {', '.join(changed)})",
    )


def _block_delete(entity_type: str, target) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason="Confirmed payroll cannot be deleted",
    )


def _check_payroll_record_immutability(mapper, connection, target):
    _block_update("PayrollRecord", target)


def _check_payroll_record_delete(mapper, connection, target):
    _block_delete("PayrollRecord", target)


def _check_payroll_run_immutability(mapper, connection, target):
    _block_update("PayrollRun", target)


def _check_payroll_run_delete(mapper, connection, target):
    _block_delete("PayrollRun", target)


def _listeners():
    # Inline import: models import from db, db must not import models at load.
    from hr_modules.payroll.orm import PayrollRecordModel, PayrollRunModel

    return (
        (PayrollRecordModel, "before_update", _check_payroll_record_immutability),
        (PayrollRecordModel, "before_delete", _check_payroll_record_delete),
        (PayrollRunModel, "before_update", _check_payroll_run_immutability),
        (PayrollRunModel, "before_delete", _check_payroll_run_delete),
    )


def register_immutability_listeners() -> None:
    """Register ORM listeners that freeze confirmed payroll (idempotent)."""
    registered = 0
    for model, event_name, fn in _listeners():
        if not event.contains(model, event_name, fn):
            event.listen(model, event_name, fn)
            registered += 1
    logger.info("immutability_listeners_registered", extra={"count": registered})


def unregister_immutability_listeners() -> None:
    """Remove the immutability listeners. FOR TESTING ONLY."""
    for model, event_name, fn in _listeners():
        if event.contains(model, event_name, fn):
            event.remove(model, event_name, fn)
    logger.warning("immutability_listeners_unregistered")
