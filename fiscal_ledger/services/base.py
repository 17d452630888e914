"""
BaseService -- abstract base for the ledger's write services.

Responsibility:
    Common constructor and session contract.  Every service receives a
    SQLAlchemy ``Session`` from its caller and persists with
    ``session.flush()`` -- never ``session.commit()``.

Invariants enforced:
    Transaction boundaries belong to the caller.  A service never commits
    or rolls back, so several service calls compose into one atomic unit
    and a caller abandons all of them by rolling back.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseService(ABC):
    """
    Abstract base class for ledger services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Read-only reporting queries belong in ``fiscal_ledger/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
