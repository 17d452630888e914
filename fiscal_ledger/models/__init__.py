"""ORM models.  Importing this package registers every ledger table."""

from fiscal_ledger.models.account import Account
from fiscal_ledger.models.fiscal_period import FiscalPeriod
from fiscal_ledger.models.journal import JournalEntry, JournalLine

__all__ = [
    "Account",
    "FiscalPeriod",
    "JournalEntry",
    "JournalLine",
]
