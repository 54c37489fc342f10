from .priority import BalanceRow, WalletBalance, balance_rows, chain_priority, sort_balances
from .summation import sum_to_n_formula, sum_to_n_loop, sum_to_n_recursive

__all__ = [
    "BalanceRow",
    "balance_rows",
    "WalletBalance",
    "chain_priority",
    "sort_balances",
    "sum_to_n_formula",
    "sum_to_n_loop",
    "sum_to_n_recursive",
]
