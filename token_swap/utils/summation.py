"""Three ways to sum the integers 1..n. Non-integers and n < 1 sum to 0."""
from __future__ import annotations

from typing import Any


def _is_positive_int(n: Any) -> bool:
    return isinstance(n, int) and not isinstance(n, bool) and n >= 1


def sum_to_n_loop(n: Any) -> int:
    if not _is_positive_int(n):
        return 0
    total = 0
    for i in range(1, n + 1):
        total += i
    return total


def sum_to_n_formula(n: Any) -> int:
    if not _is_positive_int(n):
        return 0
    return n * (n + 1) // 2


def sum_to_n_recursive(n: Any) -> int:
    # Recursion depth grows with n; keep n well below sys.getrecursionlimit().
    if not _is_positive_int(n):
        return 0
    return n + sum_to_n_recursive(n - 1)
