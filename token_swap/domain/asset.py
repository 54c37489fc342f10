"""
Asset domain models.
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class Asset:
    """Tradable asset priced in the common reference currency."""
    symbol: str
    display_name: str
    icon_ref: str
    unit_price: Decimal
    available_balance: Optional[Decimal] = None

    def __post_init__(self):
        if self.unit_price <= 0:
            raise ValueError(f"unit_price must be positive, got {self.unit_price}")
        if self.available_balance is not None and self.available_balance < 0:
            raise ValueError(f"available_balance must be non-negative, got {self.available_balance}")


@dataclass(frozen=True)
class AssetQuote:
    """One raw catalog row as delivered by the catalog upstream."""
    symbol: str
    price: Optional[Decimal]
    timestamp: Optional[datetime] = None
    name: Optional[str] = None
    icon: Optional[str] = None
