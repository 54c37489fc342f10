"""Wallet balance ordering by blockchain priority."""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Union

from ..domain.rates import format_amount


UNKNOWN_PRIORITY = -99

CHAIN_PRIORITY: Dict[str, int] = {
    "Osmosis": 100,
    "Ethereum": 50,
    "Arbitrum": 30,
    "Zilliqa": 20,
    "Neo": 20,
}


@dataclass(frozen=True)
class WalletBalance:
    currency: str
    amount: Union[Decimal, float, int]
    blockchain: str


def chain_priority(blockchain: str) -> int:
    return CHAIN_PRIORITY.get(blockchain, UNKNOWN_PRIORITY)


def sort_balances(balances: Iterable[WalletBalance]) -> List[WalletBalance]:
    """Keep positive balances on known chains, highest priority first; ties keep input order."""
    kept = [
        balance
        for balance in balances
        if chain_priority(balance.blockchain) > UNKNOWN_PRIORITY and balance.amount > 0
    ]
    # sorted() is stable, so equal priorities stay in input order
    return sorted(kept, key=lambda balance: chain_priority(balance.blockchain), reverse=True)


@dataclass(frozen=True)
class BalanceRow:
    currency: str
    amount: Decimal
    usd_value: Optional[Decimal]
    formatted_amount: str


def _as_decimal(value: Union[Decimal, float, int]) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def balance_rows(
    balances: Iterable[WalletBalance],
    prices: Mapping[str, Union[Decimal, float, int]],
) -> List[BalanceRow]:
    """
    Display rows for the sorted balances.

    ``usd_value`` is the amount times the currency's price, or None when no
    price is known for the currency. ``formatted_amount`` has four decimals.
    """
    rows = []
    for balance in sort_balances(balances):
        amount = _as_decimal(balance.amount)
        price = prices.get(balance.currency)
        rows.append(
            BalanceRow(
                currency=balance.currency,
                amount=amount,
                usd_value=None if price is None else amount * _as_decimal(price),
                formatted_amount=format_amount(amount),
            )
        )
    return rows
