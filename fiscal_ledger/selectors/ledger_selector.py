"""
Module: fiscal_ledger.selectors.ledger_selector
Responsibility: Account ledger projection -- the posted lines of one account
    in a date window, in order, each with a running balance.
Architecture position: Ledger > Selectors.  May import from models/,
    domain/ DTOs and selectors/base.py.

Invariants enforced:
    - Only lines of POSTED entries appear.  Drafts never affect a ledger.
    - Lines are ordered by (transaction_date, entry creation order,
      line position), so equal-date lines keep a stable order.
    - running_balance is the cumulative sum of (debit - credit) from zero
      at the start of the window, for every account type.  It is derived at
      query time and never stored.

Failure modes:
    - InvalidDateRangeError when date_from is after date_to.
    - AccountNotFoundError when the account does not exist, or is not
      owned by the given tenant.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from fiscal_ledger.domain.dtos import JournalEntryStatus, LedgerEntry
from fiscal_ledger.exceptions import AccountNotFoundError, InvalidDateRangeError
from fiscal_ledger.models.account import Account
from fiscal_ledger.models.journal import JournalEntry, JournalLine
from fiscal_ledger.selectors.base import BaseSelector


class LedgerProjector(BaseSelector):
    """
    Per-account ledger view over posted journal lines.

    Non-goals:
        - No opening balance carried in from before ``date_from``.
        - No sign flip for credit-normal accounts; callers that want a
          natural-sign balance negate it for those account types.
    """

    def project(
        self,
        account_id: UUID,
        date_from: date,
        date_to: date,
        tenant_id: UUID | None = None,
    ) -> tuple[LedgerEntry, ...]:
        """
        Posted lines of ``account_id`` with ``date_from <= date <= date_to``.

        Returns:
            LedgerEntry tuple in ledger order; empty if nothing was posted.
        """
        rows = self._window(account_id, date_from, date_to, tenant_id)

        balance = Decimal("0")
        entries = []
        for line, entry_description in rows:
            balance += line.debit - line.credit
            entries.append(
                LedgerEntry(
                    line_id=line.id,
                    entry_id=line.journal_entry_id,
                    account_id=line.account_id,
                    transaction_date=line.transaction_date,
                    description=entry_description,
                    line_description=line.description,
                    debit=line.debit,
                    credit=line.credit,
                    running_balance=balance,
                )
            )
        return tuple(entries)

    def account_totals(
        self,
        account_id: UUID,
        date_from: date,
        date_to: date,
        tenant_id: UUID | None = None,
    ) -> tuple[Decimal, Decimal]:
        """(debit_total, credit_total) over the same window as ``project``."""
        debit_total = Decimal("0")
        credit_total = Decimal("0")
        for line, _ in self._window(account_id, date_from, date_to, tenant_id):
            debit_total += line.debit
            credit_total += line.credit
        return debit_total, credit_total

    def _window(
        self,
        account_id: UUID,
        date_from: date,
        date_to: date,
        tenant_id: UUID | None,
    ):
        if date_from > date_to:
            raise InvalidDateRangeError(date_from, date_to)

        account = self.session.get(Account, account_id)
        if account is None or (tenant_id is not None and account.tenant_id != tenant_id):
            raise AccountNotFoundError(str(account_id))

        return self.session.execute(
            select(JournalLine, JournalEntry.description)
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .where(
                JournalLine.account_id == account_id,
                JournalEntry.status == JournalEntryStatus.POSTED.value,
                JournalLine.transaction_date >= date_from,
                JournalLine.transaction_date <= date_to,
            )
            .order_by(
                JournalLine.transaction_date,
                JournalEntry.entry_seq,
                JournalLine.line_seq,
            )
        ).all()
