"""
Double-entry rules for journal lines.

Pure functions, no I/O.  ``validate_lines`` is the single gate every journal
entry passes before anything is written.

Invariant:
    An entry is acceptable only if it has at least two lines, every debit
    and credit is non-negative, and |sum(debit) - sum(credit)| <= 0.0001.
"""

from decimal import Decimal, InvalidOperation
from typing import Iterable

from fiscal_ledger.domain.dtos import LineSpec
from fiscal_ledger.exceptions import (
    InsufficientLinesError,
    InvalidAmountError,
    NegativeAmountError,
    UnbalancedEntryError,
)

BALANCE_TOLERANCE = Decimal("0.0001")
MIN_LINES = 2


def to_amount(value: Decimal | int | str) -> Decimal:
    """Coerce an amount to a finite Decimal.  Floats are refused to keep sums exact."""
    if isinstance(value, (bool, float)):
        raise InvalidAmountError(value, f"{type(value).__name__} is not accepted, use Decimal or str")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmountError(value, "not a decimal number") from None
    if not amount.is_finite():
        raise InvalidAmountError(value, "amount must be finite")
    return amount


def normalize_line(line: LineSpec) -> LineSpec:
    """Return ``line`` with Decimal debit and credit."""
    return LineSpec(
        account_id=line.account_id,
        debit=to_amount(line.debit),
        credit=to_amount(line.credit),
        description=line.description,
    )


def totals(lines: Iterable[LineSpec]) -> tuple[Decimal, Decimal]:
    debits = Decimal("0")
    credits = Decimal("0")
    for line in lines:
        debits += line.debit
        credits += line.credit
    return debits, credits


def validate_lines(lines: Iterable[LineSpec]) -> tuple[LineSpec, ...]:
    """
    Normalise and validate journal lines.

    Returns:
        The lines with Decimal amounts, in input order.

    Raises:
        InsufficientLinesError: Fewer than two lines.
        InvalidAmountError: An amount is a float, unparseable or not finite.
        NegativeAmountError: A line has a negative debit or credit.
        UnbalancedEntryError: Debits and credits differ by more than the
            tolerance.
    """
    normalized = tuple(normalize_line(line) for line in lines)

    if len(normalized) < MIN_LINES:
        raise InsufficientLinesError(len(normalized))

    for index, line in enumerate(normalized):
        if line.debit < 0 or line.credit < 0:
            raise NegativeAmountError(index, line.debit, line.credit)

    debits, credits = totals(normalized)
    if abs(debits - credits) > BALANCE_TOLERANCE:
        raise UnbalancedEntryError(debits, credits)

    return normalized
