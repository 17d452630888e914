"""
ORM-level immutability for posted journal entries.

Once a journal entry is posted, neither its header nor its lines may be
changed or deleted through the ORM.  The posting itself is a bulk
compare-and-swap ``UPDATE`` in JournalService, which bypasses mapper events;
afterwards any flush that touches a posted entry or one of its lines raises
``ImmutabilityViolationError``.

    session.flush()
         |
         v
    [before_update] --> _check_*_immutability() --> ImmutabilityViolationError
    [before_delete] --> _check_*_delete() --------> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

updated_at/updated_by_id are audit metadata and may still change.

Usage:
    register_immutability_listeners()     # once, at startup (runtime.py)
    unregister_immutability_listeners()   # tests only
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from fiscal_ledger.domain.dtos import JournalEntryStatus
from fiscal_ledger.exceptions import ImmutabilityViolationError
from fiscal_ledger.logging_config import get_logger
from fiscal_ledger.models.journal import JournalEntry, JournalLine

logger = get_logger("db.immutability")

_AUDIT_FIELDS = frozenset({"updated_at", "updated_by_id"})


def _is_posted(status) -> bool:
    return status == JournalEntryStatus.POSTED or status == JournalEntryStatus.POSTED.value


def _block(entity_type: str, entity_id, operation: str, detail: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        detail=detail,
    )


def _check_journal_entry_immutability(mapper, connection, target):
    """
    Block updates to an entry that was already posted before this flush.

    An entry whose status changes *to* posted in this flush is allowed
    through; one whose status was posted beforehand is not.
    """
    status_history = get_history(target, "status")

    if status_history.deleted:
        was_posted = _is_posted(status_history.deleted[0])
    elif not status_history.added:
        was_posted = _is_posted(target.status)
    else:
        was_posted = False

    if not was_posted:
        return

    for attr in inspect(target).attrs:
        if attr.key in _AUDIT_FIELDS:
            continue
        if attr.history.has_changes():
            _block(
                "JournalEntry",
                target.id,
                "UPDATE",
                f"cannot modify field '{attr.key}' on a posted journal entry",
            )


def _check_journal_entry_delete(mapper, connection, target):
    if _is_posted(target.status):
        _block("JournalEntry", target.id, "DELETE", "posted journal entries cannot be deleted")


def _check_journal_line_immutability(mapper, connection, target):
    if target.entry is not None and _is_posted(target.entry.status):
        _block(
            "JournalLine",
            target.id,
            "UPDATE",
            "journal lines cannot be modified after the entry is posted",
        )


def _check_journal_line_delete(mapper, connection, target):
    if target.entry is not None and _is_posted(target.entry.status):
        _block(
            "JournalLine",
            target.id,
            "DELETE",
            "journal lines cannot be deleted after the entry is posted",
        )


_LISTENERS = (
    (JournalEntry, "before_update", _check_journal_entry_immutability),
    (JournalEntry, "before_delete", _check_journal_entry_delete),
    (JournalLine, "before_update", _check_journal_line_immutability),
    (JournalLine, "before_delete", _check_journal_line_delete),
)


def register_immutability_listeners() -> None:
    """Register the listeners.  Idempotent."""
    for target, event_name, listener in _LISTENERS:
        if not event.contains(target, event_name, listener):
            event.listen(target, event_name, listener)


def unregister_immutability_listeners() -> None:
    """Remove the listeners.  Only for tests that need to bypass them."""
    for target, event_name, listener in _LISTENERS:
        if event.contains(target, event_name, listener):
            event.remove(target, event_name, listener)
