"""
PeriodService -- fiscal period lifecycle and per-period document numbering.

Responsibility:
    Creates fiscal periods with dual-calendar (Gregorian / Bikram Sambat)
    boundaries, moves them through their lifecycle (current flag, close,
    reopen, delete) and issues sequential document numbers from the
    period's counters.

Architecture position:
    Ledger > Services -- imperative shell.  Called by application code and
    by JournalService, which checks period state before creating and
    posting entries.

Invariants enforced:
    - At most one current period per tenant.  ``set_as_current`` locks the
      tenant's period rows before flipping flags; a partial unique index
      backs it up.
    - Counters advance only while the period is open, via a single
      ``UPDATE ... RETURNING``.  Two callers never receive the same number
      and a closed period never issues one.
    - Prefixes are derived once, at creation.
    - Returns frozen ``FiscalPeriodInfo`` DTOs, never ORM entities.
    - Flush-only: never commits or rolls back the session.

Failure modes:
    - PeriodNotFoundError: unknown period, or a period of another tenant.
    - DuplicatePeriodNameError: name already used by the tenant.
    - InvalidDateRangeError / InvalidPeriodNameError /
      UnsupportedCalendarYearError: bad input.
    - PeriodAlreadyClosedError / PeriodNotClosedError: lifecycle misuse.
    - PeriodDeletionError: period is current, closed or has journal entries.
    - ClosedPeriodError: numbering or posting against a closed period.

Audit relevance:
    Creation, current-flag changes, close, reopen, delete and every issued
    document number are logged with structured fields.  Business-rule
    rejections are logged at WARNING.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import exists, select, update
from sqlalchemy.orm import Session

from fiscal_ledger.domain.calendar import (
    BikramSambatCalendar,
    PeriodBounds,
    derive_year_code,
)
from fiscal_ledger.domain.clock import Clock, SystemClock
from fiscal_ledger.domain.dtos import DocumentType, FiscalPeriodInfo
from fiscal_ledger.exceptions import (
    ClosedPeriodError,
    DuplicatePeriodNameError,
    InvalidDateRangeError,
    PeriodAlreadyClosedError,
    PeriodDeletionError,
    PeriodNotClosedError,
    PeriodNotFoundError,
)
from fiscal_ledger.logging_config import get_logger
from fiscal_ledger.models.fiscal_period import DOCUMENT_COLUMNS, FiscalPeriod
from fiscal_ledger.models.journal import JournalEntry
from fiscal_ledger.services.base import BaseService

logger = get_logger("services.period")


def document_prefixes(period_name: str) -> dict[DocumentType, str]:
    """``"2082/83"`` -> ``{INVOICE: "INV-8283-", PURCHASE: "PUR-8283-", ...}``."""
    year_code = derive_year_code(period_name)
    return {doc_type: f"{doc_type.code}-{year_code}-" for doc_type in DocumentType}


def format_document_number(prefix: str, number: int) -> str:
    return f"{prefix}{number:04d}"


class PeriodService(BaseService):
    """
    Fiscal period lifecycle and numbering.

    Contract:
        Works inside the caller's transaction.  Every mutation is flushed
        so later reads in the same transaction see it; nothing is
        committed here.

    Guarantees:
        - ``set_as_current`` leaves exactly one current period for the
          tenant once the caller commits.
        - ``generate_*_number`` returns ``prefix + NNNN`` with NNNN strictly
          greater than any number previously issued for that period and
          document type.

    Non-goals:
        - Does NOT check date-range overlap between periods.
        - Does NOT commit; use DocumentNumberService for a self-committing
          numbering call.
    """

    def __init__(
        self,
        session: Session,
        calendar: BikramSambatCalendar,
        clock: Clock | None = None,
    ):
        super().__init__(session)
        self._calendar = calendar
        self._clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create(
        self,
        tenant_id: UUID,
        name: str,
        start_date: date,
        end_date: date,
        actor_id: UUID | None = None,
    ) -> FiscalPeriodInfo:
        """
        Create an open, non-current period with explicit Gregorian bounds.

        BS display strings are converted from the Gregorian dates.

        Raises:
            InvalidDateRangeError: start_date is after end_date.
            UnsupportedCalendarYearError: a bound is outside the calendar table.
            DuplicatePeriodNameError: tenant already has a period of that name.
        """
        if start_date > end_date:
            raise InvalidDateRangeError(start_date, end_date)

        start_bs = self._calendar.to_bs(start_date)
        end_bs = self._calendar.to_bs(end_date)

        return self._insert(
            tenant_id=tenant_id,
            name=name,
            start_date=start_date,
            end_date=end_date,
            start_date_bs=str(start_bs),
            end_date_bs=str(end_bs),
            actor_id=actor_id,
        )

    def create_from_name(
        self,
        tenant_id: UUID,
        name: str,
        actor_id: UUID | None = None,
    ) -> FiscalPeriodInfo:
        """
        Create a period from a ``YYYY/YY`` name alone.

        The period runs from Shrawan 1 of the first year to the last day of
        Ashad of the second; the BS end string keeps the month-end marker
        (``2083-03-32``).

        Raises:
            InvalidPeriodNameError: name is not ``YYYY/YY`` with adjacent years.
            UnsupportedCalendarYearError: a year is outside the calendar table.
            DuplicatePeriodNameError: tenant already has a period of that name.
        """
        bounds: PeriodBounds = self._calendar.period_bounds_from_name(name)

        return self._insert(
            tenant_id=tenant_id,
            name=name,
            start_date=bounds.start_date,
            end_date=bounds.end_date,
            start_date_bs=str(bounds.start_bs),
            end_date_bs=str(bounds.end_bs),
            actor_id=actor_id,
        )

    def _insert(
        self,
        *,
        tenant_id: UUID,
        name: str,
        start_date: date,
        end_date: date,
        start_date_bs: str,
        end_date_bs: str,
        actor_id: UUID | None,
    ) -> FiscalPeriodInfo:
        if self._find_by_name(tenant_id, name) is not None:
            logger.warning(
                "period_name_conflict",
                extra={"tenant_id": str(tenant_id), "period_name": name},
            )
            raise DuplicatePeriodNameError(name)

        prefixes = document_prefixes(name)
        period = FiscalPeriod(
            tenant_id=tenant_id,
            name=name,
            start_date=start_date,
            end_date=end_date,
            start_date_bs=start_date_bs,
            end_date_bs=end_date_bs,
            is_current=False,
            is_closed=False,
            invoice_prefix=prefixes[DocumentType.INVOICE],
            purchase_prefix=prefixes[DocumentType.PURCHASE],
            voucher_prefix=prefixes[DocumentType.VOUCHER],
            last_invoice_num=0,
            last_purchase_num=0,
            last_voucher_num=0,
            created_by_id=actor_id,
        )
        self.session.add(period)
        self.session.flush()

        logger.info(
            "period_created",
            extra={
                "tenant_id": str(tenant_id),
                "period_id": str(period.id),
                "period_name": name,
                "start_date": str(start_date),
                "end_date": str(end_date),
                "start_date_bs": start_date_bs,
                "end_date_bs": end_date_bs,
            },
        )
        return period.to_dto()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def set_as_current(self, tenant_id: UUID, period_id: UUID) -> FiscalPeriodInfo:
        """
        Make ``period_id`` the tenant's only current period.

        All of the tenant's period rows are locked first, so two concurrent
        calls for the same tenant run one after the other and the last one
        wins.  Closed periods may be current.

        Raises:
            PeriodNotFoundError: no such period for this tenant.
        """
        rows = self.session.execute(
            select(FiscalPeriod)
            .where(FiscalPeriod.tenant_id == tenant_id)
            .order_by(FiscalPeriod.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().all()

        period = next((p for p in rows if p.id == period_id), None)
        if period is None:
            raise PeriodNotFoundError(str(period_id))

        # Clear first so the partial unique index never sees two current rows
        self.session.execute(
            update(FiscalPeriod)
            .where(
                FiscalPeriod.tenant_id == tenant_id,
                FiscalPeriod.id != period_id,
                FiscalPeriod.is_current.is_(True),
            )
            .values(is_current=False)
            .execution_options(synchronize_session=False)
        )
        self.session.execute(
            update(FiscalPeriod)
            .where(FiscalPeriod.id == period_id)
            .values(is_current=True)
            .execution_options(synchronize_session=False)
        )
        for row in rows:
            self.session.refresh(row)

        logger.info(
            "period_set_current",
            extra={
                "tenant_id": str(tenant_id),
                "period_id": str(period_id),
                "period_name": period.name,
            },
        )
        return period.to_dto()

    def close(self, period_id: UUID, actor_id: UUID) -> FiscalPeriodInfo:
        """
        Close an open period.

        Postconditions:
            ``is_closed`` is set, ``closed_at`` comes from the injected
            clock and ``closed_by_id`` is ``actor_id``.  Counters are frozen.

        Raises:
            PeriodNotFoundError: unknown period.
            PeriodAlreadyClosedError: period is already closed.
        """
        period = self._get_for_update(period_id)

        if period.is_closed:
            logger.warning(
                "period_already_closed",
                extra={"period_id": str(period_id), "period_name": period.name},
            )
            raise PeriodAlreadyClosedError(period.name)

        period.is_closed = True
        period.closed_at = self._clock.now()
        period.closed_by_id = actor_id
        period.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "period_closed",
            extra={
                "period_id": str(period_id),
                "period_name": period.name,
                "actor_id": str(actor_id),
                "closed_at": period.closed_at.isoformat(),
            },
        )
        return period.to_dto()

    def reopen(self, period_id: UUID, actor_id: UUID | None = None) -> FiscalPeriodInfo:
        """
        Reopen a closed period and clear its closing metadata.

        Counters resume from where they stopped; no number is reissued.

        Raises:
            PeriodNotFoundError: unknown period.
            PeriodNotClosedError: period is not closed.
        """
        period = self._get_for_update(period_id)

        if not period.is_closed:
            logger.warning(
                "period_not_closed",
                extra={"period_id": str(period_id), "period_name": period.name},
            )
            raise PeriodNotClosedError(period.name)

        period.is_closed = False
        period.closed_at = None
        period.closed_by_id = None
        period.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "period_reopened",
            extra={"period_id": str(period_id), "period_name": period.name},
        )
        return period.to_dto()

    def delete(self, period_id: UUID) -> None:
        """
        Delete a period that is neither current nor closed and holds no
        journal entries.

        Raises:
            PeriodNotFoundError: unknown period.
            PeriodDeletionError: period is current, closed or referenced.
        """
        period = self._get_for_update(period_id)

        blocker = None
        if period.is_current:
            blocker = "period is the current period"
        elif period.is_closed:
            blocker = "period is closed"
        elif self.session.execute(
            select(exists().where(JournalEntry.period_id == period_id))
        ).scalar():
            blocker = "period has journal entries"

        if blocker is not None:
            logger.warning(
                "period_delete_rejected",
                extra={
                    "period_id": str(period_id),
                    "period_name": period.name,
                    "blocker": blocker,
                },
            )
            raise PeriodDeletionError(period.name, blocker)

        self.session.delete(period)
        self.session.flush()

        logger.info(
            "period_deleted",
            extra={"period_id": str(period_id), "period_name": period.name},
        )

    # ------------------------------------------------------------------
    # Document numbering
    # ------------------------------------------------------------------

    def generate_invoice_number(self, period_id: UUID) -> str:
        return self.generate_document_number(period_id, DocumentType.INVOICE)

    def generate_purchase_number(self, period_id: UUID) -> str:
        return self.generate_document_number(period_id, DocumentType.PURCHASE)

    def generate_voucher_number(self, period_id: UUID) -> str:
        return self.generate_document_number(period_id, DocumentType.VOUCHER)

    def generate_document_number(self, period_id: UUID, doc_type: DocumentType) -> str:
        """
        Advance the period's counter for ``doc_type`` and format the number.

        The increment, the open-period check and the read of the new value
        are one conditional ``UPDATE ... RETURNING``; the row stays locked
        until the caller's transaction ends.

        Raises:
            PeriodNotFoundError: unknown period.
            ClosedPeriodError: period is closed.
        """
        doc_type = DocumentType(doc_type)
        counter_col, prefix_col = DOCUMENT_COLUMNS[doc_type]

        row = self.session.execute(
            update(FiscalPeriod)
            .where(FiscalPeriod.id == period_id, FiscalPeriod.is_closed.is_(False))
            .values({counter_col: counter_col + 1})
            .returning(counter_col, prefix_col)
            .execution_options(synchronize_session=False)
        ).one_or_none()

        if row is None:
            period = self._get_orm(period_id)
            if period is None:
                raise PeriodNotFoundError(str(period_id))
            logger.warning(
                "document_number_rejected",
                extra={
                    "period_id": str(period_id),
                    "period_name": period.name,
                    "document_type": doc_type.code,
                },
            )
            raise ClosedPeriodError(period.name, f"generate {doc_type.name.lower()} number")

        number, prefix = row
        document_number = format_document_number(prefix, number)

        logger.info(
            "document_number_issued",
            extra={
                "period_id": str(period_id),
                "document_type": doc_type.code,
                "sequence": number,
                "document_number": document_number,
            },
        )
        return document_number

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, period_id: UUID) -> FiscalPeriodInfo:
        period = self._get_orm(period_id)
        if period is None:
            raise PeriodNotFoundError(str(period_id))
        return period.to_dto()

    def get_by_name(self, tenant_id: UUID, name: str) -> FiscalPeriodInfo | None:
        period = self._find_by_name(tenant_id, name)
        return period.to_dto() if period is not None else None

    def get_current(self, tenant_id: UUID) -> FiscalPeriodInfo | None:
        period = self.session.execute(
            select(FiscalPeriod)
            .where(FiscalPeriod.tenant_id == tenant_id, FiscalPeriod.is_current.is_(True))
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return period.to_dto() if period is not None else None

    def list_for_tenant(self, tenant_id: UUID) -> list[FiscalPeriodInfo]:
        """All of the tenant's periods, newest start date first."""
        periods = self.session.execute(
            select(FiscalPeriod)
            .where(FiscalPeriod.tenant_id == tenant_id)
            .order_by(FiscalPeriod.start_date.desc(), FiscalPeriod.name.desc())
            .execution_options(populate_existing=True)
        ).scalars().all()
        return [p.to_dto() for p in periods]

    def get_shared(self, period_id: UUID) -> FiscalPeriodInfo:
        """
        Load the period under a shared row lock.

        The lock keeps a concurrent ``close`` waiting until the caller's
        transaction ends, so the state read here stays true for it.
        """
        period = self.session.execute(
            select(FiscalPeriod)
            .where(FiscalPeriod.id == period_id)
            .with_for_update(read=True)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if period is None:
            raise PeriodNotFoundError(str(period_id))
        return period.to_dto()

    def require_open(self, period_id: UUID, operation: str = "post journal entry") -> FiscalPeriodInfo:
        """
        Return the period if it is open, holding a shared row lock.

        Raises:
            PeriodNotFoundError: unknown period.
            ClosedPeriodError: period is closed.
        """
        period = self.get_shared(period_id)
        if period.is_closed:
            logger.warning(
                "period_closed_violation",
                extra={
                    "period_id": str(period_id),
                    "period_name": period.name,
                    "operation": operation,
                },
            )
            raise ClosedPeriodError(period.name, operation)
        return period

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _get_orm(self, period_id: UUID) -> FiscalPeriod | None:
        return self.session.execute(
            select(FiscalPeriod)
            .where(FiscalPeriod.id == period_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _get_for_update(self, period_id: UUID) -> FiscalPeriod:
        period = self.session.execute(
            select(FiscalPeriod)
            .where(FiscalPeriod.id == period_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if period is None:
            raise PeriodNotFoundError(str(period_id))
        return period

    def _find_by_name(self, tenant_id: UUID, name: str) -> FiscalPeriod | None:
        return self.session.execute(
            select(FiscalPeriod).where(
                FiscalPeriod.tenant_id == tenant_id,
                FiscalPeriod.name == name,
            )
        ).scalar_one_or_none()
