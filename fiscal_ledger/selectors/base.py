"""
Module: fiscal_ledger.selectors.base
Responsibility: Base class for read-only query selectors.
Architecture position: Ledger > Selectors.  May import from db/, models/
    and domain/ DTOs.  Selectors never create, modify or delete data.

Invariants enforced:
    - Read-only: no session.add(), delete(), flush() or commit().
    - Results are frozen DTOs, not ORM instances.
    - The caller owns the session and its transaction.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """Read-only access over the caller's session."""

    def __init__(self, session: Session):
        self.session = session
