"""
Recurring Ledger - Source Package

Recurrence and realization engine for a personal finance ledger:
recurring transactions and transfers are expanded into occurrences,
overlaid with per-instance exceptions, realized into permanent ledger
transactions, scanned for past-due instances and projected into
calendar and account views.

DESIGN PRINCIPLES:
1. Occurrences are computed on demand, never pushed by a timer
2. Realization happens exactly once per occurrence
3. Overlay resolution is pure and re-derivable by any caller
4. "Today" is always injected, never read from a global clock
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Recurring Ledger Team"
