"""
tea-ledger -- command line for the tea collection ledger.

Log in once, then manage items, record stock movements and inspect each
item's ledger from the shell.  Every command goes through CollectionApi,
so the same ownership and ledger rules apply as for any other client.

Entry point: the ``tea-ledger`` console script or python -m scripts.cli
"""

from scripts.cli.main import main

__all__ = ["main"]
