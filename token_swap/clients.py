"""External service clients used by token_swap."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import httpx

from .domain.asset import AssetQuote
from .domain.errors import ConversionError, ErrorKind
from .domain.interfaces import CatalogSource, ExecutionService
from .settings import settings

logger = logging.getLogger(__name__)


def _parse_price(raw: Any) -> Optional[Decimal]:
    if raw is None:
        return None
    try:
        price = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        return None
    return price if price.is_finite() else None


def _parse_timestamp(raw: Any) -> Optional[datetime]:
    if raw is None:
        return None
    if isinstance(raw, (int, float)):
        try:
            return datetime.fromtimestamp(raw, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    try:
        return datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    except ValueError:
        return None


class CatalogClient(CatalogSource):
    """Async client for the asset catalog upstream."""

    def __init__(self, base_url: Optional[str] = None) -> None:
        self._base_url = (base_url or settings.CATALOG_BASE_URL).rstrip("/")
        self._timeout = settings.CATALOG_TIMEOUT_SEC
        self._retries = settings.CATALOG_RETRIES
        self._http_client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))
        return self._http_client

    async def close(self) -> None:
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def fetch_assets(self) -> List[AssetQuote]:
        client = await self._get_client()
        last_exc: Optional[Exception] = None
        for attempt in range(self._retries + 1):
            try:
                response = await client.get(f"{self._base_url}/assets")
                response.raise_for_status()
                payload = response.json()
                if not payload.get("ok"):
                    raise RuntimeError(payload.get("error", {}).get("message", "catalog request failed"))
                return [self._to_quote(item) for item in payload.get("data", {}).get("assets", [])]
            except Exception as exc:  # noqa: BLE001
                last_exc = exc
                if attempt < self._retries:
                    logger.warning(f"Catalog fetch failed, retrying ({attempt + 1}/{self._retries}): {exc}")
                    await asyncio.sleep(0.2 * (attempt + 1))
                else:
                    break
        if isinstance(last_exc, httpx.TimeoutException):
            raise ConversionError(ErrorKind.TIMEOUT, "Asset catalog did not respond in time")
        logger.error(f"Catalog fetch failed after {self._retries} retries: {last_exc}")
        raise ConversionError(ErrorKind.FETCH_ERROR, "Failed to load tokens", {"reason": str(last_exc)})

    @staticmethod
    def _to_quote(item: Dict[str, Any]) -> AssetQuote:
        symbol = str(item.get("symbol", "")).strip().upper()
        return AssetQuote(
            symbol=symbol,
            price=_parse_price(item.get("price")),
            timestamp=_parse_timestamp(item.get("timestamp")),
            name=item.get("name"),
            icon=item.get("icon"),
        )


class ExecutionClient(ExecutionService):
    """Async client for the swap execution upstream. POSTs are never retried."""

    def __init__(self, base_url: Optional[str] = None) -> None:
        self._base_url = (base_url or settings.EXECUTION_BASE_URL).rstrip("/")
        self._timeout = settings.EXECUTION_TIMEOUT_SEC
        self._http_client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))
        return self._http_client

    async def close(self) -> None:
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def execute_swap(self, source_symbol: str, target_symbol: str, amount: Decimal) -> str:
        client = await self._get_client()
        body = {"from": source_symbol, "to": target_symbol, "amount": f"{amount:f}"}
        try:
            response = await client.post(f"{self._base_url}/swap", json=body)
        except httpx.TimeoutException:
            raise ConversionError(ErrorKind.TIMEOUT, "Swap request timed out")
        except httpx.HTTPError as exc:
            logger.error(f"Execution service unreachable: {exc}")
            raise ConversionError(ErrorKind.SUBMIT_FAILURE, "Swap failed. Please try again.")

        try:
            payload = response.json()
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            payload = {}
        if response.status_code == 200 and payload.get("ok"):
            tx_hash = payload.get("data", {}).get("tx_hash")
            if tx_hash:
                return str(tx_hash)
        error = payload.get("error")
        message = error.get("message") if isinstance(error, dict) else error
        message = str(message or "Swap failed")
        logger.error(f"Execution service rejected swap {source_symbol}->{target_symbol}: HTTP {response.status_code} {message}")
        raise ConversionError(ErrorKind.SUBMIT_FAILURE, message)
