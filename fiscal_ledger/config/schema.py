"""Typed configuration objects produced by ``fiscal_ledger.config.loader``."""

from dataclasses import dataclass


@dataclass(frozen=True)
class LedgerSettings:
    """Runtime settings for one process."""

    database_url: str
    echo_sql: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    log_level: str = "INFO"
    number_max_attempts: int = 3

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")
