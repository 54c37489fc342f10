"""Pydantic models for the token_swap HTTP surface."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .domain.asset import Asset
from .domain.errors import ConversionError
from .domain.session import AssetRole, ConversionSession, SwapReceipt


BAD_INPUT = "BadInput"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ErrorBody(BaseModel):
    code: str
    message: str
    source: str = "token_swap"
    retriable: bool = False
    details: Optional[Dict[str, Any]] = None

    @classmethod
    def from_error(cls, error: ConversionError, *, retriable: bool = False) -> "ErrorBody":
        return cls(**error.as_dict(), retriable=retriable)


class OkEnvelope(BaseModel):
    ok: bool = True
    data: Dict[str, Any]
    ts: datetime = Field(default_factory=_utcnow)


class ErrEnvelope(BaseModel):
    ok: bool = False
    error: ErrorBody
    ts: datetime = Field(default_factory=_utcnow)


class AssetView(BaseModel):
    model_config = ConfigDict(frozen=True)

    symbol: str
    display_name: str
    icon_ref: str
    unit_price: str
    available_balance: Optional[str] = None

    @classmethod
    def from_asset(cls, asset: Asset) -> "AssetView":
        balance = None if asset.available_balance is None else f"{asset.available_balance:f}"
        return cls(
            symbol=asset.symbol,
            display_name=asset.display_name,
            icon_ref=asset.icon_ref,
            unit_price=f"{asset.unit_price:f}",
            available_balance=balance,
        )


class ReceiptView(BaseModel):
    model_config = ConfigDict(frozen=True)

    transaction_id: str
    source_symbol: str
    target_symbol: str
    source_amount: str
    target_amount: str

    @classmethod
    def from_receipt(cls, receipt: SwapReceipt) -> "ReceiptView":
        return cls(
            transaction_id=receipt.transaction_id,
            source_symbol=receipt.source_symbol,
            target_symbol=receipt.target_symbol,
            source_amount=receipt.source_amount,
            target_amount=receipt.target_amount,
        )


class SessionSnapshot(BaseModel):
    """Read-only view of the conversion session handed to the presentation layer."""

    model_config = ConfigDict(frozen=True)

    phase: str
    source_asset: Optional[AssetView] = None
    target_asset: Optional[AssetView] = None
    source_amount: str = ""
    target_amount: str = ""
    rate: Optional[str] = None
    error: Optional[ErrorBody] = None
    last_receipt: Optional[ReceiptView] = None

    @classmethod
    def from_session(cls, session: ConversionSession) -> "SessionSnapshot":
        rate = session.current_rate()
        error = session.current_error
        return cls(
            phase=session.phase.value,
            source_asset=AssetView.from_asset(session.source_asset) if session.source_asset else None,
            target_asset=AssetView.from_asset(session.target_asset) if session.target_asset else None,
            source_amount=session.source_amount_text,
            target_amount=session.target_amount_text,
            rate=None if rate is None else f"{rate:f}",
            error=ErrorBody.from_error(error) if error is not None else None,
            last_receipt=ReceiptView.from_receipt(session.last_receipt) if session.last_receipt else None,
        )


class CatalogView(BaseModel):
    assets: List[AssetView]
    source_candidates: List[AssetView]
    target_candidates: List[AssetView]


class AmountRequest(BaseModel):
    text: str = ""


class SelectAssetRequest(BaseModel):
    symbol: str = Field(min_length=1)
    role: AssetRole
