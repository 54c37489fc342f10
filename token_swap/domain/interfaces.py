from abc import ABC, abstractmethod
from decimal import Decimal
from typing import List

from .asset import AssetQuote


class CatalogSource(ABC):
    @abstractmethod
    async def fetch_assets(self) -> List[AssetQuote]:
        pass


class ExecutionService(ABC):
    @abstractmethod
    async def execute_swap(self, source_symbol: str, target_symbol: str, amount: Decimal) -> str:
        """Return the transaction id, or raise ConversionError on failure."""
