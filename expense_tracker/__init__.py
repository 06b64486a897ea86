"""
Expense Tracker - Source Package

A personal finance ledger: dated income/expense entries, a monthly
budget per period, analytics derived from the entries, and AI advice
when spending crosses the budget.

DESIGN PRINCIPLES:
1. Entries are the source of truth, the budget's spending is a cache
2. The cache is always rebuilt from entries, never nudged
3. Nothing in the ledger core is fatal - failures degrade to defaults
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Expense Tracker Team"
