"""
Module: fiscal_ledger.models.fiscal_period
Responsibility: ORM persistence for fiscal periods -- the date windows that
    gate document numbering and journal posting.
Architecture position: Ledger > Models.  May import from db/base.py and
    domain/ only.

Invariants enforced:
    - (tenant_id, name) is unique (uq_fiscal_period_tenant_name).
    - At most one current period per tenant: partial unique index on
      tenant_id WHERE is_current (uq_fiscal_period_current).  The service
      serialises changes with row locks; the index is the backstop.
    - end_date >= start_date (ck_fiscal_period_dates).
    - Document counters only increase.  They are advanced exclusively by a
      single UPDATE ... RETURNING in PeriodService.

Failure modes:
    - IntegrityError on duplicate name or a second current period.
"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Index,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from fiscal_ledger.db.base import TrackedBase, UUIDString
from fiscal_ledger.domain.dtos import DocumentType, FiscalPeriodInfo


class FiscalPeriod(TrackedBase):
    """
    Fiscal period of one tenant, named ``YYYY/YY`` in Bikram Sambat years.

    Contract:
        Gregorian ``start_date``/``end_date`` are authoritative for range
        checks.  ``start_date_bs``/``end_date_bs`` are display strings and may
        carry the month-end marker day (``2083-03-32``).

    Guarantees:
        - Prefixes are set once at creation and never rewritten.
        - ``closed_at``/``closed_by_id`` are set iff ``is_closed``.
    """

    __tablename__ = "fiscal_periods"

    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_fiscal_period_tenant_name"),
        CheckConstraint("end_date >= start_date", name="ck_fiscal_period_dates"),
        Index("idx_fiscal_period_tenant_start", "tenant_id", "start_date"),
        Index(
            "uq_fiscal_period_current",
            "tenant_id",
            unique=True,
            postgresql_where=text("is_current"),
            sqlite_where=text("is_current = 1"),
        ),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    # e.g. "2082/83"
    name: Mapped[str] = mapped_column(String(20), nullable=False)

    # Gregorian boundaries (inclusive)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Bikram Sambat display strings
    start_date_bs: Mapped[str] = mapped_column(String(10), nullable=False)
    end_date_bs: Mapped[str] = mapped_column(String(10), nullable=False)

    is_current: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_closed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    closed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    closed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    # Document number prefixes, e.g. "INV-8283-"
    invoice_prefix: Mapped[str] = mapped_column(String(20), nullable=False)
    purchase_prefix: Mapped[str] = mapped_column(String(20), nullable=False)
    voucher_prefix: Mapped[str] = mapped_column(String(20), nullable=False)

    last_invoice_num: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    last_purchase_num: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    last_voucher_num: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)

    def __repr__(self) -> str:
        state = "closed" if self.is_closed else "open"
        return f"<FiscalPeriod {self.name}: {state}>"

    def to_dto(self) -> FiscalPeriodInfo:
        return FiscalPeriodInfo(
            id=self.id,
            tenant_id=self.tenant_id,
            name=self.name,
            start_date=self.start_date,
            end_date=self.end_date,
            start_date_bs=self.start_date_bs,
            end_date_bs=self.end_date_bs,
            is_current=self.is_current,
            is_closed=self.is_closed,
            invoice_prefix=self.invoice_prefix,
            purchase_prefix=self.purchase_prefix,
            voucher_prefix=self.voucher_prefix,
            last_invoice_num=self.last_invoice_num,
            last_purchase_num=self.last_purchase_num,
            last_voucher_num=self.last_voucher_num,
            closed_at=self.closed_at,
            closed_by_id=self.closed_by_id,
        )


# Counter and prefix columns per document type
DOCUMENT_COLUMNS = {
    DocumentType.INVOICE: (FiscalPeriod.last_invoice_num, FiscalPeriod.invoice_prefix),
    DocumentType.PURCHASE: (FiscalPeriod.last_purchase_num, FiscalPeriod.purchase_prefix),
    DocumentType.VOUCHER: (FiscalPeriod.last_voucher_num, FiscalPeriod.voucher_prefix),
}
