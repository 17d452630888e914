"""Write services.  All are flush-only except DocumentNumberService."""

from fiscal_ledger.services.account_service import AccountService
from fiscal_ledger.services.document_number_service import DocumentNumberService
from fiscal_ledger.services.journal_service import JournalService
from fiscal_ledger.services.period_service import PeriodService
from fiscal_ledger.services.sequence_service import SequenceCounter, SequenceService

__all__ = [
    "AccountService",
    "DocumentNumberService",
    "JournalService",
    "PeriodService",
    "SequenceCounter",
    "SequenceService",
]
