"""
Module: fiscal_ledger.models.account
Responsibility: ORM persistence for the chart of accounts -- the target of
    every journal line.
Architecture position: Ledger > Models.  May import from db/base.py and
    domain/ only.

Invariants enforced:
    - code is unique per tenant (uq_account_tenant_code).

Failure modes:
    - IntegrityError on a duplicate (tenant_id, code) pair.
"""

from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fiscal_ledger.db.base import TrackedBase, UUIDString
from fiscal_ledger.domain.dtos import AccountInfo, AccountType, NormalBalance, normal_balance_for


class Account(TrackedBase):
    """
    Chart of accounts entry.

    Contract:
        ``normal_balance`` is derived from ``account_type`` and not stored;
        ledger projections sign every line as debit minus credit regardless.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_account_tenant_code"),
        Index("idx_account_tenant_type", "tenant_id", "account_type"),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    # Human-readable code, e.g. "1000"
    code: Mapped[str] = mapped_column(String(50), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    account_type: Mapped[AccountType] = mapped_column(String(20), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    parent_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=True,
    )

    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"

    @property
    def normal_balance(self) -> NormalBalance:
        return normal_balance_for(AccountType(self.account_type))

    def to_dto(self) -> AccountInfo:
        return AccountInfo(
            id=self.id,
            tenant_id=self.tenant_id,
            code=self.code,
            name=self.name,
            account_type=AccountType(self.account_type),
            is_active=self.is_active,
            parent_id=self.parent_id,
            description=self.description,
        )
