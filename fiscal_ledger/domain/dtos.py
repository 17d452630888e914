"""
Domain DTOs -- immutable values passed across the service boundary.

Services accept and return these frozen dataclasses, never ORM instances,
so callers cannot mutate ledger state by writing to fields.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class AccountType(str, Enum):
    """Types of accounts in the chart of accounts."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"


class NormalBalance(str, Enum):
    """Side on which an account type normally carries its balance."""

    DEBIT = "debit"
    CREDIT = "credit"


DEBIT_NORMAL_TYPES = frozenset({AccountType.ASSET, AccountType.EXPENSE})


def normal_balance_for(account_type: AccountType) -> NormalBalance:
    if AccountType(account_type) in DEBIT_NORMAL_TYPES:
        return NormalBalance.DEBIT
    return NormalBalance.CREDIT


class JournalEntryStatus(str, Enum):
    """Lifecycle status of a journal entry.

    Contract: the only transition is DRAFT -> POSTED.
    """

    DRAFT = "draft"
    POSTED = "posted"


class DocumentType(str, Enum):
    """Business documents numbered per fiscal period."""

    INVOICE = "INV"
    PURCHASE = "PUR"
    VOUCHER = "JV"

    @property
    def code(self) -> str:
        return self.value


@dataclass(frozen=True)
class FiscalPeriodInfo:
    """
    Snapshot of a fiscal period.

    ``start_date_bs`` / ``end_date_bs`` are display strings; the end string
    may carry the month-end marker day (``2083-03-32``).
    """

    id: UUID
    tenant_id: UUID
    name: str
    start_date: date
    end_date: date
    start_date_bs: str
    end_date_bs: str
    is_current: bool
    is_closed: bool
    invoice_prefix: str
    purchase_prefix: str
    voucher_prefix: str
    last_invoice_num: int
    last_purchase_num: int
    last_voucher_num: int
    closed_at: datetime | None = None
    closed_by_id: UUID | None = None

    def contains(self, check_date: date) -> bool:
        return self.start_date <= check_date <= self.end_date


@dataclass(frozen=True)
class AccountInfo:
    """Snapshot of a chart-of-accounts entry."""

    id: UUID
    tenant_id: UUID
    code: str
    name: str
    account_type: AccountType
    is_active: bool
    parent_id: UUID | None = None
    description: str | None = None

    @property
    def normal_balance(self) -> NormalBalance:
        return normal_balance_for(self.account_type)


@dataclass(frozen=True)
class EntryReference:
    """Source document a journal entry was raised for (invoice, payment...)."""

    reference_id: UUID
    reference_type: str


@dataclass(frozen=True)
class LineSpec:
    """
    Requested journal line.

    Amounts are Decimals; strings and ints are accepted and converted.
    Floats are rejected by ``double_entry.to_amount``.
    """

    account_id: UUID
    debit: Decimal = Decimal("0")
    credit: Decimal = Decimal("0")
    description: str | None = None


@dataclass(frozen=True)
class JournalLineInfo:
    id: UUID
    entry_id: UUID
    account_id: UUID
    debit: Decimal
    credit: Decimal
    line_seq: int
    description: str | None = None


@dataclass(frozen=True)
class JournalEntryInfo:
    """Snapshot of a journal entry header and its lines."""

    id: UUID
    tenant_id: UUID
    period_id: UUID
    transaction_date: date
    description: str
    status: JournalEntryStatus
    entry_seq: int
    lines: tuple[JournalLineInfo, ...]
    reference: EntryReference | None = None
    posted_at: datetime | None = None
    posted_by_id: UUID | None = None

    @property
    def is_posted(self) -> bool:
        return self.status == JournalEntryStatus.POSTED

    @property
    def total_debits(self) -> Decimal:
        return sum((line.debit for line in self.lines), Decimal("0"))

    @property
    def total_credits(self) -> Decimal:
        return sum((line.credit for line in self.lines), Decimal("0"))


@dataclass(frozen=True)
class LedgerEntry:
    """
    One posted journal line in a ledger projection.

    ``running_balance`` is cumulative ``debit - credit`` within the
    projection window only; it is never stored.
    """

    line_id: UUID
    entry_id: UUID
    account_id: UUID
    transaction_date: date
    description: str
    line_description: str | None
    debit: Decimal
    credit: Decimal
    running_balance: Decimal
