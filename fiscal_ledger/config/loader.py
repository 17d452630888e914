"""
Configuration Loader (``fiscal_ledger.config.loader``).

Responsibility
--------------
Loads the YAML files shipped in ``fiscal_ledger/config/`` (or supplied by
the deployment) and parses them into frozen objects: ``LedgerSettings`` for
runtime settings and ``CalendarTable`` for the Bikram Sambat month table.

Invariants enforced
-------------------
* Required keys must be present; no silent defaults for the calendar table.
* Every calendar year has exactly twelve positive month lengths, years are
  contiguous, and the anchor date lies inside the table.
* ``compute_checksum`` produces a deterministic SHA-256 hash of a table so
  deployments can verify which table they run.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing keys  -> ``KeyError`` propagates.
* Structurally invalid table  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
import os
from datetime import date
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

from fiscal_ledger.config.schema import LedgerSettings
from fiscal_ledger.domain.calendar import BSDate, CalendarTable

CONFIG_DIR = Path(__file__).parent
DEFAULT_SETTINGS_PATH = CONFIG_DIR / "settings.yaml"
DEFAULT_CALENDAR_PATH = CONFIG_DIR / "bikram_sambat.yaml"

ENV_DATABASE_URL = "FISCAL_LEDGER_DATABASE_URL"
ENV_LOG_LEVEL = "FISCAL_LEDGER_LOG_LEVEL"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    return data or {}


# =============================================================================
# Settings
# =============================================================================


def parse_settings(data: dict[str, Any], environ: dict[str, str] | None = None) -> LedgerSettings:
    """Build ``LedgerSettings`` from parsed YAML, applying env overrides."""
    env = os.environ if environ is None else environ
    database = data.get("database", {})
    logging_cfg = data.get("logging", {})
    numbering = data.get("numbering", {})

    return LedgerSettings(
        database_url=env.get(ENV_DATABASE_URL) or database["url"],
        echo_sql=bool(database.get("echo", False)),
        pool_size=int(database.get("pool_size", 20)),
        max_overflow=int(database.get("max_overflow", 10)),
        pool_timeout=int(database.get("pool_timeout", 30)),
        log_level=(env.get(ENV_LOG_LEVEL) or logging_cfg.get("level", "INFO")).upper(),
        number_max_attempts=int(numbering.get("max_attempts", 3)),
    )


def load_settings(path: Path | None = None, environ: dict[str, str] | None = None) -> LedgerSettings:
    return parse_settings(load_yaml_file(path or DEFAULT_SETTINGS_PATH), environ)


# =============================================================================
# Calendar table
# =============================================================================


def _parse_bs(value: str) -> BSDate:
    year, month, day = (int(part) for part in str(value).split("-"))
    return BSDate(year, month, day)


def parse_calendar_table(data: dict[str, Any]) -> CalendarTable:
    """
    Parse and validate a calendar table dict.

    Raises:
        KeyError: ``anchor`` or ``month_days`` missing.
        ValueError: table is structurally invalid.
    """
    anchor = data["anchor"]
    anchor_bs = _parse_bs(anchor["bs"])
    anchor_ad = date.fromisoformat(str(anchor["ad"]))

    month_days: dict[int, tuple[int, ...]] = {}
    for raw_year, lengths in data["month_days"].items():
        year = int(raw_year)
        if len(lengths) != 12:
            raise ValueError(f"Calendar year {year} has {len(lengths)} months, expected 12")
        if any(int(n) < 1 or int(n) > 32 for n in lengths):
            raise ValueError(f"Calendar year {year} has a month length outside 1-32")
        month_days[year] = tuple(int(n) for n in lengths)

    if not month_days:
        raise ValueError("Calendar table is empty")

    years = sorted(month_days)
    if years != list(range(years[0], years[-1] + 1)):
        raise ValueError("Calendar table years must be contiguous")

    if anchor_bs.year not in month_days:
        raise ValueError(f"Anchor year {anchor_bs.year} is outside the table")
    if anchor_bs.day > month_days[anchor_bs.year][anchor_bs.month - 1]:
        raise ValueError(f"Anchor date {anchor_bs} does not exist in the table")

    return CalendarTable(
        anchor_bs=anchor_bs,
        anchor_ad=anchor_ad,
        month_days=dict(sorted(month_days.items())),
    )


def load_calendar_table(path: Path | None = None) -> CalendarTable:
    return parse_calendar_table(load_yaml_file(path or DEFAULT_CALENDAR_PATH))


@lru_cache(maxsize=1)
def default_calendar_table() -> CalendarTable:
    """The packaged BS table, parsed once per process."""
    return load_calendar_table()


def compute_checksum(table: CalendarTable) -> str:
    """Deterministic SHA-256 over the anchor pair and month lengths."""
    canonical = json.dumps(
        {
            "anchor_bs": str(table.anchor_bs),
            "anchor_ad": table.anchor_ad.isoformat(),
            "month_days": {str(y): list(m) for y, m in sorted(table.month_days.items())},
        },
        sort_keys=True,
        separators=(",", ":"),
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
