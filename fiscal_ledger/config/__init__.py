"""YAML-backed configuration: runtime settings and the Bikram Sambat table."""

from fiscal_ledger.config.loader import (
    DEFAULT_CALENDAR_PATH,
    DEFAULT_SETTINGS_PATH,
    compute_checksum,
    default_calendar_table,
    load_calendar_table,
    load_settings,
    parse_calendar_table,
    parse_settings,
)
from fiscal_ledger.config.schema import LedgerSettings

__all__ = [
    "DEFAULT_CALENDAR_PATH",
    "DEFAULT_SETTINGS_PATH",
    "LedgerSettings",
    "compute_checksum",
    "default_calendar_table",
    "load_calendar_table",
    "load_settings",
    "parse_calendar_table",
    "parse_settings",
]
