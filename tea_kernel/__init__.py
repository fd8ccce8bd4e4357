"""
Tea Kernel

Authenticated data access and inventory ledger for a personal tea and
teaware collection:
- Stateless signed identity assertions
- Ownership-scoped item repository
- Append-only stock ledger reconciled with each item's quantity
- Atomic, row-locked stock movements
"""

__version__ = "0.1.0"
