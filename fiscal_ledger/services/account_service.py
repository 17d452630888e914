"""
AccountService -- chart of accounts maintenance.

Responsibility:
    Creates and updates accounts and resolves the accounts a journal entry
    refers to.

Invariants enforced:
    - Account code is unique per tenant.
    - An account's parent exists in the same tenant and the hierarchy has
      no cycles.
    - Accounts of another tenant are invisible: lookups raise
      AccountNotFoundError exactly as for a missing account.

Failure modes:
    - DuplicateAccountCodeError, AccountNotFoundError,
      InvalidAccountParentError.
"""

from typing import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from fiscal_ledger.domain.dtos import AccountInfo, AccountType
from fiscal_ledger.exceptions import (
    AccountNotFoundError,
    DuplicateAccountCodeError,
    InvalidAccountParentError,
)
from fiscal_ledger.logging_config import get_logger
from fiscal_ledger.models.account import Account
from fiscal_ledger.services.base import BaseService

logger = get_logger("services.account")

# Marks an update() argument that was not supplied
_UNSET = object()


class AccountService(BaseService):
    """Chart of accounts CRUD.  Flush-only."""

    def __init__(self, session: Session):
        super().__init__(session)

    def create(
        self,
        tenant_id: UUID,
        code: str,
        name: str,
        account_type: AccountType,
        parent_id: UUID | None = None,
        description: str | None = None,
        actor_id: UUID | None = None,
    ) -> AccountInfo:
        account_type = AccountType(account_type)

        existing = self.session.execute(
            select(Account.id).where(Account.tenant_id == tenant_id, Account.code == code)
        ).scalar_one_or_none()
        if existing is not None:
            logger.warning(
                "account_code_conflict",
                extra={"tenant_id": str(tenant_id), "account_code": code},
            )
            raise DuplicateAccountCodeError(code)

        if parent_id is not None:
            self._get_orm(tenant_id, parent_id)

        account = Account(
            tenant_id=tenant_id,
            code=code,
            name=name,
            account_type=account_type.value,
            parent_id=parent_id,
            description=description,
            is_active=True,
            created_by_id=actor_id,
        )
        self.session.add(account)
        self.session.flush()

        logger.info(
            "account_created",
            extra={
                "tenant_id": str(tenant_id),
                "account_id": str(account.id),
                "account_code": code,
                "account_type": account_type.value,
            },
        )
        return account.to_dto()

    def get(self, account_id: UUID, tenant_id: UUID | None = None) -> AccountInfo:
        """
        Load one account.  With ``tenant_id``, an account of another tenant
        is reported as not found.
        """
        account = self.session.get(Account, account_id)
        if account is None or (tenant_id is not None and account.tenant_id != tenant_id):
            raise AccountNotFoundError(str(account_id))
        return account.to_dto()

    def list_for_tenant(self, tenant_id: UUID, include_inactive: bool = True) -> list[AccountInfo]:
        stmt = select(Account).where(Account.tenant_id == tenant_id)
        if not include_inactive:
            stmt = stmt.where(Account.is_active.is_(True))
        accounts = self.session.execute(stmt.order_by(Account.code)).scalars().all()
        return [a.to_dto() for a in accounts]

    def update(
        self,
        tenant_id: UUID,
        account_id: UUID,
        *,
        name: str | None = None,
        account_type: AccountType | None = None,
        parent_id=_UNSET,
        description=_UNSET,
        is_active: bool | None = None,
        actor_id: UUID | None = None,
    ) -> AccountInfo:
        """
        Change the supplied fields.  ``parent_id=None`` and
        ``description=None`` clear those fields; omitting them leaves them
        as they are.  The code is fixed once created.
        """
        account = self._get_orm(tenant_id, account_id)

        if name is not None:
            account.name = name
        if account_type is not None:
            account.account_type = AccountType(account_type).value
        if parent_id is not _UNSET:
            if parent_id is not None:
                self._check_parent(tenant_id, account_id, parent_id)
            account.parent_id = parent_id
        if description is not _UNSET:
            account.description = description
        if is_active is not None:
            account.is_active = is_active
        account.updated_by_id = actor_id

        self.session.flush()

        logger.info(
            "account_updated",
            extra={"tenant_id": str(tenant_id), "account_id": str(account_id)},
        )
        return account.to_dto()

    def require_accounts(self, tenant_id: UUID, account_ids: Iterable[UUID]) -> dict[UUID, AccountInfo]:
        """
        Resolve every id to an account of ``tenant_id``.

        Raises:
            AccountNotFoundError: for the first id (in input order) that is
                missing or belongs to another tenant.
        """
        wanted = list(dict.fromkeys(account_ids))
        if not wanted:
            return {}

        found = {
            account.id: account.to_dto()
            for account in self.session.execute(
                select(Account).where(Account.tenant_id == tenant_id, Account.id.in_(wanted))
            ).scalars()
        }
        for account_id in wanted:
            if account_id not in found:
                logger.warning(
                    "account_not_found",
                    extra={"tenant_id": str(tenant_id), "account_id": str(account_id)},
                )
                raise AccountNotFoundError(str(account_id))
        return found

    def _get_orm(self, tenant_id: UUID, account_id: UUID) -> Account:
        account = self.session.get(Account, account_id)
        if account is None or account.tenant_id != tenant_id:
            raise AccountNotFoundError(str(account_id))
        return account

    def _check_parent(self, tenant_id: UUID, account_id: UUID, parent_id: UUID) -> None:
        """Walk up from ``parent_id``; reaching ``account_id`` means a cycle."""
        seen: set[UUID] = set()
        current: UUID | None = parent_id
        while current is not None and current not in seen:
            if current == account_id:
                raise InvalidAccountParentError(str(account_id), str(parent_id))
            seen.add(current)
            current = self._get_orm(tenant_id, current).parent_id
