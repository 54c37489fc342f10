"""
Conversion session aggregate.

The session is owned and mutated by ConversionEngine only; everything else
reads it through ConversionEngine.snapshot().
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

from .asset import Asset
from .errors import ConversionError
from .rates import rate


class Phase(str, Enum):
    IDLE = "Idle"
    CATALOG_LOADING = "CatalogLoading"
    READY = "Ready"
    SWAPPING = "Swapping"
    SUBMITTING = "Submitting"


class AssetRole(str, Enum):
    SOURCE = "Source"
    TARGET = "Target"


@dataclass(frozen=True)
class SwapReceipt:
    transaction_id: str
    source_symbol: str
    target_symbol: str
    source_amount: str
    target_amount: str


@dataclass
class ConversionSession:
    source_asset: Optional[Asset] = None
    target_asset: Optional[Asset] = None
    source_amount_text: str = ""
    target_amount_text: str = ""
    phase: Phase = Phase.IDLE
    # amount validation only (MalformedNumber, NonPositiveAmount, InsufficientBalance)
    validation_error: Optional[ConversionError] = None
    submit_error: Optional[ConversionError] = None
    catalog_error: Optional[ConversionError] = None
    last_receipt: Optional[SwapReceipt] = None

    @property
    def current_error(self) -> Optional[ConversionError]:
        return self.validation_error or self.submit_error or self.catalog_error

    @property
    def has_pair(self) -> bool:
        return self.source_asset is not None and self.target_asset is not None

    def current_rate(self) -> Optional[Decimal]:
        if not self.has_pair:
            return None
        return rate(self.source_asset, self.target_asset)

    def clear_amounts(self) -> None:
        self.source_amount_text = ""
        self.target_amount_text = ""
        self.validation_error = None
