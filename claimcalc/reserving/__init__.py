"""Reserving core: pure calculations, lifecycle rules, persistence and caching.

Submodules are imported directly (e.g. ``from claimcalc.reserving import ledger``);
only the pure calculator helpers are re-exported here.
"""

from claimcalc.reserving.calculator import (
    compute_line_totals,
    compute_variance,
    format_currency,
    round2,
    select_current_reserve,
)

__all__ = [
    "compute_line_totals",
    "compute_variance",
    "format_currency",
    "round2",
    "select_current_reserve",
]
