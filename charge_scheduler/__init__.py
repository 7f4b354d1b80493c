"""
Charge Scheduler - Source Package

Recurring charge schedule and weekly ledger for a business-operations
dashboard: billable charges expected from clients, projected onto a
Sunday-to-Saturday calendar, with the next occurrence of a recurring
charge scheduled when the current one is settled.

DESIGN PRINCIPLES:
1. Money is Decimal, due dates are calendar dates
2. The store is the source of truth; the view is reconciled after every write
3. Fail visibly: a half-applied settle says which half went through
4. Every state change is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Charge Scheduler Team"
