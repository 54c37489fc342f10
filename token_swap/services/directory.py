"""
Asset directory cache.

Holds the fetched catalog keyed by symbol. The mapping is rebuilt off to the
side and swapped in with a single assignment, so readers never observe a
half-refreshed catalog.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional

from ..domain.asset import Asset, AssetQuote
from ..domain.interfaces import CatalogSource
from ..settings import settings

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _quote_time(quote: AssetQuote) -> datetime:
    # Quotes without a timestamp lose against any timestamped quote.
    if quote.timestamp is None:
        return _EPOCH
    if quote.timestamp.tzinfo is None:
        return quote.timestamp.replace(tzinfo=timezone.utc)
    return quote.timestamp.astimezone(timezone.utc)


def build_assets(quotes: Iterable[AssetQuote], balances: Mapping[str, Decimal]) -> Dict[str, Asset]:
    """Drop unpriced quotes, keep the latest quote per symbol, attach balances."""
    latest: Dict[str, AssetQuote] = {}
    dropped = 0
    for quote in quotes:
        symbol = (quote.symbol or "").strip().upper()
        if not symbol or quote.price is None or quote.price <= 0:
            dropped += 1
            continue
        current = latest.get(symbol)
        # ">=" so the last one read wins a timestamp tie
        if current is None or _quote_time(quote) >= _quote_time(current):
            latest[symbol] = quote

    assets: Dict[str, Asset] = {}
    for symbol, quote in latest.items():
        assets[symbol] = Asset(
            symbol=symbol,
            display_name=quote.name or symbol,
            icon_ref=quote.icon or "",
            unit_price=quote.price,
            available_balance=balances.get(symbol),
        )
    if dropped:
        logger.info(f"Dropped {dropped} catalog rows without a positive price")
    return assets


class AssetDirectory:
    """Read-only view of the tradable asset catalog."""

    def __init__(self, source: CatalogSource, balances: Optional[Mapping[str, Decimal]] = None) -> None:
        self._source = source
        if balances is None:
            balances = settings.wallet_balances()
        self._balances: Dict[str, Decimal] = {symbol.upper(): amount for symbol, amount in balances.items()}
        self._assets: Dict[str, Asset] = {}

    @property
    def source(self) -> CatalogSource:
        return self._source

    @property
    def loaded(self) -> bool:
        return bool(self._assets)

    async def load(self) -> List[Asset]:
        quotes = await self._source.fetch_assets()
        assets = build_assets(quotes, self._balances)
        self._assets = assets
        logger.info(f"Asset catalog loaded: {len(assets)} assets")
        return list(assets.values())

    async def refresh(self) -> List[Asset]:
        return await self.load()

    def lookup(self, symbol: str) -> Optional[Asset]:
        if not symbol:
            return None
        return self._assets.get(symbol.strip().upper())

    def assets(self) -> List[Asset]:
        return list(self._assets.values())

    def source_candidates(self) -> List[Asset]:
        """Assets the user holds a balance in, or every asset when no wallet is configured."""
        if not self._balances:
            return self.assets()
        return [asset for asset in self._assets.values() if asset.available_balance is not None]

    def target_candidates(self, source_symbol: Optional[str] = None) -> List[Asset]:
        if not source_symbol:
            return self.assets()
        excluded = source_symbol.strip().upper()
        return [asset for asset in self._assets.values() if asset.symbol != excluded]
