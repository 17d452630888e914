"""
Module: fiscal_ledger.models.journal
Responsibility: ORM persistence for journal entries and their lines.
Architecture position: Ledger > Models.  May import from db/base.py and
    domain/ only.

Invariants enforced:
    - Every line has debit >= 0 and credit >= 0 (ck_journal_line_*).
    - Status moves only draft -> posted.  The transition is a compare-and-swap
      in JournalService; db/immutability.py blocks ORM edits afterwards.
    - journal_lines.transaction_date always equals its header's date.

Failure modes:
    - IntegrityError on a negative amount or a dangling account reference.
    - ImmutabilityViolationError (via db/immutability.py) on any ORM update
      or delete of a posted entry or its lines.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fiscal_ledger.db.base import TrackedBase, UUIDString
from fiscal_ledger.domain.dtos import (
    EntryReference,
    JournalEntryInfo,
    JournalEntryStatus,
    JournalLineInfo,
)


class JournalEntry(TrackedBase):
    """
    Journal entry header.

    Contract:
        Created as DRAFT with its full set of balanced lines.  Lines are
        never added or removed after creation.

    Guarantees:
        - entry_seq is unique and increases in creation order.
        - posted_at/posted_by_id are set iff status is POSTED.
    """

    __tablename__ = "journal_entries"

    __table_args__ = (
        Index("idx_journal_tenant_period", "tenant_id", "period_id"),
        Index("idx_journal_transaction_date", "transaction_date"),
        Index("uq_journal_entry_seq", "entry_seq", unique=True),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    period_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("fiscal_periods.id"),
        nullable=False,
    )

    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)

    description: Mapped[str] = mapped_column(String(1000), nullable=False)

    status: Mapped[JournalEntryStatus] = mapped_column(
        String(10),
        default=JournalEntryStatus.DRAFT,
        nullable=False,
    )

    # Source document (invoice, payment...) this entry records
    reference_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    reference_type: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Global creation order from the "journal_entry" sequence
    entry_seq: Mapped[int] = mapped_column(BigInteger, nullable=False)

    posted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    posted_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="JournalLine.line_seq",
    )

    def __repr__(self) -> str:
        return f"<JournalEntry {self.id} status={self.status}>"

    @property
    def is_posted(self) -> bool:
        return self.status == JournalEntryStatus.POSTED

    def to_dto(self) -> JournalEntryInfo:
        reference = None
        if self.reference_id is not None:
            reference = EntryReference(
                reference_id=self.reference_id,
                reference_type=self.reference_type or "",
            )
        return JournalEntryInfo(
            id=self.id,
            tenant_id=self.tenant_id,
            period_id=self.period_id,
            transaction_date=self.transaction_date,
            description=self.description,
            status=JournalEntryStatus(self.status),
            entry_seq=self.entry_seq,
            lines=tuple(line.to_dto() for line in self.lines),
            reference=reference,
            posted_at=self.posted_at,
            posted_by_id=self.posted_by_id,
        )


class JournalLine(TrackedBase):
    """
    One debit and/or credit against a single account.

    ``transaction_date`` is copied from the header so ledger scans can filter
    and order lines without joining back to journal_entries.
    """

    __tablename__ = "journal_lines"

    __table_args__ = (
        CheckConstraint("debit >= 0", name="ck_journal_line_debit"),
        CheckConstraint("credit >= 0", name="ck_journal_line_credit"),
        Index("idx_line_entry", "journal_entry_id"),
        Index("idx_line_account_date", "account_id", "transaction_date"),
    )

    journal_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)

    debit: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    credit: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    # Position within the entry, for deterministic ordering
    line_seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    entry: Mapped["JournalEntry"] = relationship(back_populates="lines")

    def __repr__(self) -> str:
        return f"<JournalLine {self.account_id} Dr {self.debit} Cr {self.credit}>"

    def to_dto(self) -> JournalLineInfo:
        return JournalLineInfo(
            id=self.id,
            entry_id=self.journal_entry_id,
            account_id=self.account_id,
            debit=self.debit,
            credit=self.credit,
            line_seq=self.line_seq,
            description=self.description,
        )
