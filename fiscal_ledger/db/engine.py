"""
Module: fiscal_ledger.db.engine
Responsibility: SQLAlchemy engine construction, session factories, and
    transactional scope utilities.
Architecture position: Ledger > DB.  May import from db/base.py.  Only
    create_tables/drop_tables import models (so metadata is complete).

Invariants enforced:
    - No module-level engine.  Engines and session factories are built
      explicitly and handed to whoever needs them (see runtime.py).
    - PostgreSQL runs at READ COMMITTED with explicit row locks
      (``SELECT ... FOR UPDATE``) where stronger guarantees are needed.
    - SQLite transactions start with ``BEGIN IMMEDIATE`` so writers
      serialise at BEGIN instead of deadlocking on lock upgrade.

Failure modes:
    - OperationalError on connection loss, lock timeout or deadlock.
      ``run_in_transaction`` retries these; nothing else retries them.
    - Connection pool exhaustion if pool_size + max_overflow is exceeded.
"""

import time
from contextlib import contextmanager
from typing import Callable, Generator, TypeVar

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from fiscal_ledger.config.schema import LedgerSettings
from fiscal_ledger.exceptions import LedgerError
from fiscal_ledger.logging_config import get_logger

logger = get_logger("db.engine")

T = TypeVar("T")

SQLITE_BUSY_TIMEOUT = 30


def _install_sqlite_transaction_events(engine: Engine) -> None:
    """Let SQLAlchemy, not pysqlite, emit BEGIN; and make it IMMEDIATE."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Create an engine for ``database_url``.

    PostgreSQL gets a pre-pinged QueuePool at READ COMMITTED.  SQLite
    (local runs and tests) gets a busy timeout and BEGIN IMMEDIATE
    transactions; pool sizing does not apply to it.
    """
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"timeout": SQLITE_BUSY_TIMEOUT, "check_same_thread": False},
        )
        _install_sqlite_transaction_events(engine)
    else:
        engine = create_engine(
            database_url,
            echo=echo,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=pool_pre_ping,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            isolation_level="READ COMMITTED",
        )

    logger.info(
        "engine_initialized",
        extra={
            "dialect": engine.dialect.name,
            "pool_size": pool_size,
            "max_overflow": max_overflow,
            "echo": echo,
        },
    )
    return engine


def build_engine_from_settings(settings: LedgerSettings) -> Engine:
    return build_engine(
        settings.database_url,
        echo=settings.echo_sql,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
        pool_timeout=settings.pool_timeout,
    )


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False)


@contextmanager
def session_scope(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    Postconditions: On normal exit, the session is committed and closed.
        On exception, it is rolled back and closed and the exception is
        re-raised.

    Usage:
        with session_scope(factory) as session:
            PeriodService(session, calendar, clock).close(period_id, actor_id)
    """
    session = session_factory()
    logger.debug("transaction_started")
    try:
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except Exception:
        session.rollback()
        logger.debug("transaction_rolled_back")
        raise
    finally:
        session.close()


def run_in_transaction(
    session_factory: sessionmaker[Session],
    work: Callable[[Session], T],
    *,
    max_attempts: int = 3,
    backoff_seconds: float = 0.05,
    operation: str = "transaction",
) -> T:
    """
    Run ``work(session)`` in its own committed transaction.

    Transient ``OperationalError``s (lock timeouts, deadlocks, dropped
    connections) roll the attempt back and retry it, up to
    ``max_attempts`` in total.  A rolled-back attempt leaves no trace, so
    a retry never applies ``work`` twice.  ``LedgerError``s are business
    outcomes and propagate on the first occurrence.
    """
    for attempt in range(1, max_attempts + 1):
        try:
            with session_scope(session_factory) as session:
                return work(session)
        except LedgerError:
            raise
        except OperationalError as exc:
            if attempt >= max_attempts:
                logger.error(
                    "transaction_retries_exhausted",
                    extra={"operation": operation, "attempts": attempt},
                )
                raise
            logger.warning(
                "transaction_retry",
                extra={
                    "operation": operation,
                    "attempt": attempt,
                    "max_attempts": max_attempts,
                    "error": str(exc.orig) if exc.orig is not None else str(exc),
                },
            )
            time.sleep(backoff_seconds * attempt)
    raise RuntimeError("max_attempts must be at least 1")


def create_tables(engine: Engine) -> None:
    """
    Create every ledger table and the well-known sequence counters.

    Safe to call repeatedly.
    """
    from fiscal_ledger.db.base import Base
    from fiscal_ledger.models import Account, FiscalPeriod, JournalEntry, JournalLine  # noqa: F401
    from fiscal_ledger.services.sequence_service import SequenceService

    Base.metadata.create_all(engine)

    with Session(engine) as session, session.begin():
        SequenceService(session).initialize_sequences()

    logger.info("tables_created", extra={"tables": sorted(Base.metadata.tables)})


def drop_tables(engine: Engine) -> None:
    """Drop all tables. Use with caution - primarily for testing."""
    from fiscal_ledger.db.base import Base
    from fiscal_ledger.services.sequence_service import SequenceCounter  # noqa: F401

    Base.metadata.drop_all(engine)
