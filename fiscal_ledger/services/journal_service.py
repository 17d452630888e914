"""
JournalService -- create and post double-entry journal entries.

Responsibility:
    Records journal entries as drafts, after checking the period, the
    transaction date, the accounts and the double-entry rules, and posts
    drafts.

Architecture position:
    Ledger > Services -- imperative shell.  Depends on PeriodService for
    period state, AccountService for account resolution and
    SequenceService for creation order.

Invariants enforced:
    - An entry is persisted only with >= 2 lines, non-negative amounts and
      |debits - credits| <= 0.0001 (domain/double_entry.py).
    - transaction_date lies within the period's Gregorian range.
    - No entry is created in, or posted to, a closed period.  The period
      row is read under a shared lock so a concurrent close waits.
    - draft -> posted happens once: the status change is a compare-and-
      swap ``UPDATE ... WHERE status = 'draft'``.
    - Header and lines are written in one flush; any failure leaves
      nothing behind once the caller rolls back.

Failure modes:
    - PeriodNotFoundError, AccountNotFoundError, JournalEntryNotFoundError.
    - PeriodClosedForEntryError, TransactionDateOutOfPeriodError,
      InsufficientLinesError, NegativeAmountError, UnbalancedEntryError.
    - EntryAlreadyPostedError: posting an entry twice (or losing a race).
    - ClosedPeriodError: posting after the period was closed.

Audit relevance:
    Creation and posting are logged with entry, period and actor ids.
"""

from datetime import date
from typing import Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from fiscal_ledger.domain.clock import Clock, SystemClock
from fiscal_ledger.domain.double_entry import totals, validate_lines
from fiscal_ledger.domain.dtos import (
    EntryReference,
    JournalEntryInfo,
    JournalEntryStatus,
    LineSpec,
)
from fiscal_ledger.exceptions import (
    EntryAlreadyPostedError,
    JournalEntryNotFoundError,
    PeriodClosedForEntryError,
    PeriodNotFoundError,
    TransactionDateOutOfPeriodError,
)
from fiscal_ledger.logging_config import LogContext, get_logger
from fiscal_ledger.models.journal import JournalEntry, JournalLine
from fiscal_ledger.services.account_service import AccountService
from fiscal_ledger.services.base import BaseService
from fiscal_ledger.services.period_service import PeriodService
from fiscal_ledger.services.sequence_service import SequenceService

logger = get_logger("services.journal")


class JournalService(BaseService):
    """
    Journal entry lifecycle: draft creation and posting.

    Contract:
        Flush-only.  ``create`` returns a DRAFT entry; ``post`` returns the
        POSTED entry.  Both return frozen ``JournalEntryInfo`` DTOs.

    Non-goals:
        - No reversal or editing of entries; posted entries are immutable.
    """

    def __init__(
        self,
        session: Session,
        period_service: PeriodService,
        sequence_service: SequenceService | None = None,
        clock: Clock | None = None,
        account_service: AccountService | None = None,
    ):
        super().__init__(session)
        self._periods = period_service
        self._sequences = sequence_service or SequenceService(session)
        self._accounts = account_service or AccountService(session)
        self._clock = clock or SystemClock()

    def create(
        self,
        tenant_id: UUID,
        period_id: UUID,
        transaction_date: date,
        description: str,
        lines: Sequence[LineSpec],
        actor_id: UUID | None = None,
        reference: EntryReference | None = None,
    ) -> JournalEntryInfo:
        """
        Validate and store a DRAFT journal entry.

        Checks run in this order: period exists for the tenant, period is
        open, date within the period, accounts exist for the tenant, then
        the double-entry rules.

        Raises:
            PeriodNotFoundError, PeriodClosedForEntryError,
            TransactionDateOutOfPeriodError, AccountNotFoundError,
            InsufficientLinesError, NegativeAmountError,
            UnbalancedEntryError.
        """
        with LogContext.bind(tenant_id=tenant_id, period_id=period_id, actor_id=actor_id):
            period = self._periods.get_shared(period_id)
            if period.tenant_id != tenant_id:
                raise PeriodNotFoundError(str(period_id))

            if period.is_closed:
                logger.warning(
                    "journal_entry_rejected",
                    extra={"rejection": "period_closed", "period_name": period.name},
                )
                raise PeriodClosedForEntryError(period.name)

            if not period.contains(transaction_date):
                logger.warning(
                    "journal_entry_rejected",
                    extra={
                        "rejection": "date_out_of_period",
                        "transaction_date": transaction_date.isoformat(),
                        "period_name": period.name,
                    },
                )
                raise TransactionDateOutOfPeriodError(
                    transaction_date,
                    period.name,
                    period.start_date,
                    period.end_date,
                )

            lines = list(lines)
            self._accounts.require_accounts(tenant_id, [line.account_id for line in lines])

            normalized = validate_lines(lines)

            entry = JournalEntry(
                tenant_id=tenant_id,
                period_id=period_id,
                transaction_date=transaction_date,
                description=description,
                status=JournalEntryStatus.DRAFT.value,
                reference_id=reference.reference_id if reference else None,
                reference_type=reference.reference_type if reference else None,
                entry_seq=self._sequences.next_value(SequenceService.JOURNAL_ENTRY),
                created_by_id=actor_id,
            )
            entry.lines = [
                JournalLine(
                    account_id=line.account_id,
                    transaction_date=transaction_date,
                    debit=line.debit,
                    credit=line.credit,
                    description=line.description,
                    line_seq=index,
                    created_by_id=actor_id,
                )
                for index, line in enumerate(normalized)
            ]
            self.session.add(entry)
            self.session.flush()

            debits, _ = totals(normalized)
            logger.info(
                "journal_entry_created",
                extra={
                    "entry_id": str(entry.id),
                    "entry_seq": entry.entry_seq,
                    "line_count": len(normalized),
                    "total_debits": debits,
                },
            )
            return entry.to_dto()

    def post(self, entry_id: UUID, actor_id: UUID) -> JournalEntryInfo:
        """
        Move a DRAFT entry to POSTED.

        Postconditions:
            status is POSTED, posted_at comes from the injected clock and
            posted_by_id is ``actor_id``.

        Raises:
            JournalEntryNotFoundError: unknown entry.
            EntryAlreadyPostedError: entry already posted, including by a
                concurrent caller between our read and our update.
            ClosedPeriodError: the entry's period has been closed.
        """
        with LogContext.bind(entry_id=entry_id, actor_id=actor_id):
            entry = self._get_orm(entry_id)
            if entry is None:
                raise JournalEntryNotFoundError(str(entry_id))

            if entry.is_posted:
                logger.warning("journal_entry_already_posted")
                raise EntryAlreadyPostedError(str(entry_id))

            self._periods.require_open(entry.period_id, "post journal entry")

            result = self.session.execute(
                update(JournalEntry)
                .where(
                    JournalEntry.id == entry_id,
                    JournalEntry.status == JournalEntryStatus.DRAFT.value,
                )
                .values(
                    status=JournalEntryStatus.POSTED.value,
                    posted_at=self._clock.now(),
                    posted_by_id=actor_id,
                    updated_by_id=actor_id,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                logger.warning("journal_entry_post_race_lost")
                raise EntryAlreadyPostedError(str(entry_id))

            self.session.refresh(entry)

            logger.info(
                "journal_entry_posted",
                extra={"period_id": str(entry.period_id)},
            )
            return entry.to_dto()

    def get(self, entry_id: UUID, tenant_id: UUID | None = None) -> JournalEntryInfo:
        entry = self._get_orm(entry_id)
        if entry is None or (tenant_id is not None and entry.tenant_id != tenant_id):
            raise JournalEntryNotFoundError(str(entry_id))
        return entry.to_dto()

    def list_for_period(
        self,
        tenant_id: UUID,
        period_id: UUID,
        limit: int = 100,
    ) -> list[JournalEntryInfo]:
        """Entries of one period, most recently created first."""
        entries = self.session.execute(
            select(JournalEntry)
            .where(JournalEntry.tenant_id == tenant_id, JournalEntry.period_id == period_id)
            .order_by(JournalEntry.entry_seq.desc())
            .limit(limit)
        ).scalars().all()
        return [e.to_dto() for e in entries]

    def _get_orm(self, entry_id: UUID) -> JournalEntry | None:
        return self.session.execute(
            select(JournalEntry)
            .where(JournalEntry.id == entry_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
