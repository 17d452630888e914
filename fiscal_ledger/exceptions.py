"""
Typed exception hierarchy for the fiscal ledger.

Every error raised by the ledger core is one of four kinds.  Callers (HTTP
handlers, audit hooks) map the kind to a response; they never parse messages.

    LedgerError (base)
    |
    +-- ValidationError            input is malformed or violates a rule
    |   +-- InvalidCalendarDateError
    |   +-- UnsupportedCalendarYearError
    |   +-- InvalidPeriodNameError
    |   +-- InvalidDateRangeError
    |   +-- TransactionDateOutOfPeriodError
    |   +-- PeriodClosedForEntryError
    |   +-- InsufficientLinesError
    |   +-- InvalidAmountError
    |   +-- NegativeAmountError
    |   +-- UnbalancedEntryError
    |   +-- InvalidAccountParentError
    |
    +-- ConflictError              request collides with existing data
    |   +-- DuplicateAccountCodeError
    |   +-- DuplicatePeriodNameError
    |   +-- EntryAlreadyPostedError
    |
    +-- StateError                 lifecycle state forbids the operation
    |   +-- ClosedPeriodError
    |   +-- PeriodAlreadyClosedError
    |   +-- PeriodNotClosedError
    |   +-- PeriodDeletionError
    |   +-- ImmutabilityViolationError
    |
    +-- NotFoundError              a referenced record does not exist
        +-- PeriodNotFoundError
        +-- JournalEntryNotFoundError
        +-- AccountNotFoundError

Error codes
-----------
Every class carries a ``code`` class attribute (machine readable, API safe)
and stores its context as attributes so it survives logging and
serialisation.  ``kind`` names the top-level category.

None of these errors is retried automatically: they are business-rule
violations, not transient failures.
"""

from datetime import date
from decimal import Decimal


class LedgerError(Exception):
    """Base exception for all fiscal ledger errors."""

    code: str = "LEDGER_ERROR"
    kind: str = "ledger"

    @property
    def reason(self) -> str:
        """Human-readable reason (the exception message)."""
        return str(self)


# =============================================================================
# Categories
# =============================================================================


class ValidationError(LedgerError):
    """Input is malformed or out of range."""

    code: str = "VALIDATION_ERROR"
    kind: str = "validation"


class ConflictError(LedgerError):
    """Request conflicts with data that already exists."""

    code: str = "CONFLICT"
    kind: str = "conflict"


class StateError(LedgerError):
    """Operation is forbidden by the current lifecycle state."""

    code: str = "INVALID_STATE"
    kind: str = "state"


class NotFoundError(LedgerError):
    """A referenced record does not exist."""

    code: str = "NOT_FOUND"
    kind: str = "not_found"


# =============================================================================
# Validation errors
# =============================================================================


class InvalidCalendarDateError(ValidationError):
    """A Bikram Sambat date has an impossible month or day."""

    code: str = "INVALID_CALENDAR_DATE"

    def __init__(self, value: str, detail: str):
        self.value = value
        self.detail = detail
        super().__init__(f"Invalid calendar date {value}: {detail}")


class UnsupportedCalendarYearError(ValidationError):
    """The year is outside the calendar table's supported range."""

    code: str = "UNSUPPORTED_CALENDAR_YEAR"

    def __init__(self, year: int, first_year: int, last_year: int):
        self.year = year
        self.first_year = first_year
        self.last_year = last_year
        super().__init__(
            f"Unsupported calendar year {year} "
            f"(table covers {first_year}-{last_year})"
        )


class InvalidPeriodNameError(ValidationError):
    """Period name does not have the YYYY/YY shape."""

    code: str = "INVALID_PERIOD_NAME"

    def __init__(self, name: str, detail: str = "expected YYYY/YY, e.g. 2082/83"):
        self.name = name
        self.detail = detail
        super().__init__(f"Invalid period name '{name}': {detail}")


class InvalidDateRangeError(ValidationError):
    """A start date falls after its end date."""

    code: str = "INVALID_DATE_RANGE"

    def __init__(self, start_date: date, end_date: date):
        self.start_date = start_date
        self.end_date = end_date
        super().__init__(
            f"start date ({start_date}) cannot be after end date ({end_date})"
        )


class TransactionDateOutOfPeriodError(ValidationError):
    """Journal entry date lies outside its fiscal period."""

    code: str = "TRANSACTION_DATE_OUT_OF_PERIOD"

    def __init__(
        self,
        transaction_date: date,
        period_name: str,
        start_date: date,
        end_date: date,
    ):
        self.transaction_date = transaction_date
        self.period_name = period_name
        self.start_date = start_date
        self.end_date = end_date
        super().__init__(
            f"Transaction date {transaction_date} is outside period "
            f"{period_name} ({start_date} to {end_date})"
        )


class PeriodClosedForEntryError(ValidationError):
    """A new journal entry targets a closed period."""

    code: str = "PERIOD_CLOSED_FOR_ENTRY"

    def __init__(self, period_name: str):
        self.period_name = period_name
        super().__init__(
            f"Cannot create journal entry in closed period {period_name}"
        )


class InsufficientLinesError(ValidationError):
    """A journal entry needs at least two lines."""

    code: str = "INSUFFICIENT_LINES"

    def __init__(self, line_count: int):
        self.line_count = line_count
        super().__init__(
            f"Journal entry must have at least 2 lines, got {line_count}"
        )


class InvalidAmountError(ValidationError):
    """A debit or credit is not a finite decimal amount."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, value: object, reason: str):
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid amount {value!r}: {reason}")


class NegativeAmountError(ValidationError):
    """A debit or credit amount is negative."""

    code: str = "NEGATIVE_AMOUNT"

    def __init__(self, line_index: int, debit: Decimal, credit: Decimal):
        self.line_index = line_index
        self.debit = debit
        self.credit = credit
        super().__init__(
            f"Line {line_index}: debit and credit must be non-negative "
            f"(debit={debit}, credit={credit})"
        )


class UnbalancedEntryError(ValidationError):
    """Total debits differ from total credits."""

    code: str = "UNBALANCED_ENTRY"

    def __init__(self, debits: Decimal, credits: Decimal):
        self.debits = debits
        self.credits = credits
        super().__init__(
            f"Journal entry is unbalanced: debits={debits}, credits={credits}"
        )


class InvalidAccountParentError(ValidationError):
    """Account parent would make the hierarchy cyclic."""

    code: str = "INVALID_ACCOUNT_PARENT"

    def __init__(self, account_id: str, parent_id: str):
        self.account_id = account_id
        self.parent_id = parent_id
        super().__init__(
            f"Account {parent_id} cannot be the parent of {account_id}: "
            "it would create a cycle"
        )


# =============================================================================
# Conflict errors
# =============================================================================


class DuplicateAccountCodeError(ConflictError):
    """Account code already exists for the tenant."""

    code: str = "DUPLICATE_ACCOUNT_CODE"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(f"Account code already exists: {account_code}")


class DuplicatePeriodNameError(ConflictError):
    """Fiscal period name already exists for the tenant."""

    code: str = "DUPLICATE_PERIOD_NAME"

    def __init__(self, period_name: str):
        self.period_name = period_name
        super().__init__(f"Fiscal period already exists: {period_name}")


class EntryAlreadyPostedError(ConflictError):
    """Journal entry is already posted."""

    code: str = "ENTRY_ALREADY_POSTED"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Journal entry is already posted: {entry_id}")


# =============================================================================
# State errors
# =============================================================================


class ClosedPeriodError(StateError):
    """Numbering or posting attempted against a closed period."""

    code: str = "CLOSED_PERIOD"

    def __init__(self, period_name: str, operation: str):
        self.period_name = period_name
        self.operation = operation
        super().__init__(f"Cannot {operation}: fiscal period {period_name} is closed")


class PeriodAlreadyClosedError(StateError):
    """Period is already closed."""

    code: str = "PERIOD_ALREADY_CLOSED"

    def __init__(self, period_name: str):
        self.period_name = period_name
        super().__init__(f"Fiscal period is already closed: {period_name}")


class PeriodNotClosedError(StateError):
    """Reopen attempted on a period that is not closed."""

    code: str = "PERIOD_NOT_CLOSED"

    def __init__(self, period_name: str):
        self.period_name = period_name
        super().__init__(f"Fiscal period is not closed: {period_name}")


class PeriodDeletionError(StateError):
    """Period cannot be deleted in its current state."""

    code: str = "PERIOD_NOT_DELETABLE"

    def __init__(self, period_name: str, reason: str):
        self.period_name = period_name
        self.blocker = reason
        super().__init__(f"Cannot delete fiscal period {period_name}: {reason}")


class ImmutabilityViolationError(StateError):
    """Attempt to modify or delete a posted record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, detail: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.detail = detail
        super().__init__(f"{entity_type} {entity_id} is immutable: {detail}")


# =============================================================================
# Not-found errors
# =============================================================================


class PeriodNotFoundError(NotFoundError):
    """Fiscal period does not exist."""

    code: str = "PERIOD_NOT_FOUND"

    def __init__(self, period_ref: str):
        self.period_ref = period_ref
        super().__init__(f"Fiscal period not found: {period_ref}")


class JournalEntryNotFoundError(NotFoundError):
    """Journal entry does not exist."""

    code: str = "JOURNAL_ENTRY_NOT_FOUND"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Journal entry not found: {entry_id}")


class AccountNotFoundError(NotFoundError):
    """Account does not exist (or is not visible to the tenant)."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account not found: {account_id}")
