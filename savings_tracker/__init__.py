"""
Savings Tracker - Source Package

A personal savings ledger: monthly deposits and targets, withdrawals
against the current month's balance, and a per-month breakdown view.

DESIGN PRINCIPLES:
1. Store gross deposits, derive net balance from the withdrawal log
2. Withdrawals are validated and written in one transaction
3. Fail early, fail visibly
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Savings Tracker Team"
