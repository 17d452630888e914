"""
fiscal_ledger.runtime -- process-wide wiring of the ledger.

Responsibility:
    Builds the long-lived collaborators once at startup (settings, calendar,
    clock, engine, session factory) and hands out per-transaction service
    bundles.  Nothing in the ledger is a module-level singleton; everything
    reaches its dependencies through a LedgerRuntime.

Usage:
    runtime = build_runtime()
    runtime.create_schema()

    with runtime.transaction() as ledger:
        period = ledger.periods.create_from_name(tenant_id, "2082/83", actor_id)
        ledger.periods.set_as_current(tenant_id, period.id)

    number = runtime.document_numbers.next_invoice_number(period.id)
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Generator

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from fiscal_ledger.config.loader import default_calendar_table, load_settings
from fiscal_ledger.config.schema import LedgerSettings
from fiscal_ledger.db.engine import (
    build_engine_from_settings,
    build_session_factory,
    create_tables,
    session_scope,
)
from fiscal_ledger.db.immutability import register_immutability_listeners
from fiscal_ledger.domain.calendar import BikramSambatCalendar, CalendarTable
from fiscal_ledger.domain.clock import Clock, SystemClock
from fiscal_ledger.logging_config import configure_logging, get_logger
from fiscal_ledger.selectors.ledger_selector import LedgerProjector
from fiscal_ledger.services.account_service import AccountService
from fiscal_ledger.services.document_number_service import DocumentNumberService
from fiscal_ledger.services.journal_service import JournalService
from fiscal_ledger.services.period_service import PeriodService
from fiscal_ledger.services.sequence_service import SequenceService

logger = get_logger("runtime")


@dataclass
class LedgerServices:
    """
    Services bound to one session.

    Every service shares the session and clock, so their writes land in
    the same transaction.
    """

    session: Session
    periods: PeriodService
    accounts: AccountService
    sequences: SequenceService
    journals: JournalService
    ledger: LedgerProjector


@dataclass
class LedgerRuntime:
    """
    Long-lived collaborators, built once per process.

    Contract:
        Thread-safe to share: the engine pools connections, the session
        factory hands each caller its own session, and the calendar and
        clock are stateless.
    """

    settings: LedgerSettings
    calendar: BikramSambatCalendar
    clock: Clock
    engine: Engine
    session_factory: sessionmaker[Session]
    document_numbers: DocumentNumberService = field(init=False)

    def __post_init__(self) -> None:
        self.document_numbers = DocumentNumberService(
            self.session_factory,
            self.calendar,
            self.clock,
            max_attempts=self.settings.number_max_attempts,
        )

    def services(self, session: Session) -> LedgerServices:
        """Wire every flush-only service onto ``session``."""
        periods = PeriodService(session, self.calendar, self.clock)
        accounts = AccountService(session)
        sequences = SequenceService(session)
        journals = JournalService(
            session,
            periods,
            sequences,
            self.clock,
            account_service=accounts,
        )
        return LedgerServices(
            session=session,
            periods=periods,
            accounts=accounts,
            sequences=sequences,
            journals=journals,
            ledger=LedgerProjector(session),
        )

    @contextmanager
    def transaction(self) -> Generator[LedgerServices, None, None]:
        """One committed unit of work; any exception rolls all of it back."""
        with session_scope(self.session_factory) as session:
            yield self.services(session)

    def create_schema(self) -> None:
        create_tables(self.engine)

    def dispose(self) -> None:
        self.engine.dispose()


def build_runtime(
    settings: LedgerSettings | None = None,
    calendar_table: CalendarTable | None = None,
    clock: Clock | None = None,
    engine: Engine | None = None,
) -> LedgerRuntime:
    """
    Assemble a LedgerRuntime from configuration.

    Anything not supplied is loaded from the packaged YAML (settings honour
    the FISCAL_LEDGER_* environment overrides).
    """
    settings = settings or load_settings()
    configure_logging(level=settings.log_level)
    register_immutability_listeners()

    engine = engine or build_engine_from_settings(settings)
    runtime = LedgerRuntime(
        settings=settings,
        calendar=BikramSambatCalendar(calendar_table or default_calendar_table()),
        clock=clock or SystemClock(),
        engine=engine,
        session_factory=build_session_factory(engine),
    )

    logger.info(
        "runtime_built",
        extra={
            "dialect": engine.dialect.name,
            "calendar_years": f"{runtime.calendar.supported_years.start}-"
            f"{runtime.calendar.supported_years.stop - 1}",
        },
    )
    return runtime
