"""
SmartFi - Source Package

A personal net-worth tracker: accounts in COP and USD, grouped and
tagged, with a replayed history of net worth and performance figures
per scope.

DESIGN PRINCIPLES:
1. Balances change only through recorded transactions
2. The engine is pure: rate and "now" are always parameters
3. Degenerate numbers become zero, never errors
4. Every ledger change is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "SmartFi Team"
