"""
DocumentNumberService -- self-committing document numbering.

Responsibility:
    Entry point for callers that need a document number but do not own a
    database transaction (e.g. a request handler issuing an invoice number
    before the invoice itself is saved).  Each call runs
    ``PeriodService.generate_document_number`` in its own transaction and
    commits before returning.

Invariants enforced:
    - A returned number is committed: it is never issued again, even if the
      caller later fails.
    - Transient database errors (lock timeout, deadlock, dropped
      connection) are retried.  A failed attempt is rolled back, so a retry
      never consumes two numbers.
    - Business errors (closed period, unknown period) are not retried.

Failure modes:
    - PeriodNotFoundError / ClosedPeriodError from PeriodService.
    - OperationalError once ``max_attempts`` is exhausted.
"""

from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from fiscal_ledger.db.engine import run_in_transaction
from fiscal_ledger.domain.calendar import BikramSambatCalendar
from fiscal_ledger.domain.clock import Clock, SystemClock
from fiscal_ledger.domain.dtos import DocumentType
from fiscal_ledger.services.period_service import PeriodService


class DocumentNumberService:
    """Committed, retrying wrapper around PeriodService numbering."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        calendar: BikramSambatCalendar,
        clock: Clock | None = None,
        max_attempts: int = 3,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._session_factory = session_factory
        self._calendar = calendar
        self._clock = clock or SystemClock()
        self._max_attempts = max_attempts

    def next_number(self, period_id: UUID, doc_type: DocumentType) -> str:
        doc_type = DocumentType(doc_type)

        def work(session: Session) -> str:
            service = PeriodService(session, self._calendar, self._clock)
            return service.generate_document_number(period_id, doc_type)

        return run_in_transaction(
            self._session_factory,
            work,
            max_attempts=self._max_attempts,
            operation=f"generate_{doc_type.name.lower()}_number",
        )

    def next_invoice_number(self, period_id: UUID) -> str:
        return self.next_number(period_id, DocumentType.INVOICE)

    def next_purchase_number(self, period_id: UUID) -> str:
        return self.next_number(period_id, DocumentType.PURCHASE)

    def next_voucher_number(self, period_id: UUID) -> str:
        return self.next_number(period_id, DocumentType.VOUCHER)
