"""Read-only queries over the ledger."""

from fiscal_ledger.selectors.ledger_selector import LedgerProjector

__all__ = ["LedgerProjector"]
