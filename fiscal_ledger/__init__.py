"""
Fiscal ledger: Bikram Sambat fiscal periods, document numbering and a
double-entry journal with per-account ledger projections.
"""

__version__ = "0.1.0"
