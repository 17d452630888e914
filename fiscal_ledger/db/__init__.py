"""Database layer: declarative base, engine/session construction, ORM guards."""

from fiscal_ledger.db.base import Base, TrackedBase, UUIDString
from fiscal_ledger.db.engine import (
    build_engine,
    build_engine_from_settings,
    build_session_factory,
    create_tables,
    drop_tables,
    run_in_transaction,
    session_scope,
)

__all__ = [
    "Base",
    "TrackedBase",
    "UUIDString",
    "build_engine",
    "build_engine_from_settings",
    "build_session_factory",
    "create_tables",
    "drop_tables",
    "run_in_transaction",
    "session_scope",
]
