"""
Financial Computation Engine

Pure, synchronous functions over accounts and transactions.
Nothing in this package performs I/O or holds state between calls:
the exchange rate and the evaluation time are always parameters.
"""

from smartfi.engine.currency import CurrencyConverter, convert
from smartfi.engine.history import reconstruct_history
from smartfi.engine.ordering import (
    MoveDirection,
    apply_orders,
    move_account,
    move_group,
    next_sort_order,
)
from smartfi.engine.performance import (
    accounts_in_scope,
    available_scope_filters,
    compute_performance,
)
from smartfi.engine.valuation import compute_valuation, net_value

__all__ = [
    "CurrencyConverter",
    "MoveDirection",
    "accounts_in_scope",
    "apply_orders",
    "available_scope_filters",
    "compute_performance",
    "compute_valuation",
    "convert",
    "move_account",
    "move_group",
    "net_value",
    "next_sort_order",
    "reconstruct_history",
]
