"""Amount validation for user-typed source amounts."""
from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from .asset import Asset
from .errors import ConversionError, ErrorKind


# ASCII digits only; matched with fullmatch so a trailing newline is rejected
_DECIMAL_NUMERAL = re.compile(r"(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)")


@dataclass(frozen=True)
class ValidationResult:
    accepted: bool
    kind: Optional[ErrorKind] = None
    message: str = ""
    details: Optional[Dict[str, Any]] = None
    amount: Optional[Decimal] = None

    def to_error(self) -> Optional[ConversionError]:
        if self.accepted or self.kind is None:
            return None
        return ConversionError(self.kind, self.message, self.details)


def parse_amount(text: str) -> Optional[Decimal]:
    """Parse a plain non-negative decimal numeral; None when the text is not one."""
    if not _DECIMAL_NUMERAL.fullmatch(text):
        return None
    try:
        return Decimal(text)
    except InvalidOperation:
        return None


def validate(text: str, asset: Optional[Asset] = None) -> ValidationResult:
    """
    Classify raw amount text.

    Empty text is accepted and means "no amount entered". The balance check
    only applies when the source asset tracks an available balance.
    """
    if text == "":
        return ValidationResult(accepted=True)

    amount = parse_amount(text)
    if amount is None:
        return ValidationResult(
            accepted=False,
            kind=ErrorKind.MALFORMED_NUMBER,
            message="Please enter a valid number",
        )
    if amount <= 0:
        return ValidationResult(
            accepted=False,
            kind=ErrorKind.NON_POSITIVE_AMOUNT,
            message="Amount must be greater than 0",
        )
    if asset is not None and asset.available_balance is not None and amount > asset.available_balance:
        maximum = asset.available_balance.normalize()
        return ValidationResult(
            accepted=False,
            kind=ErrorKind.INSUFFICIENT_BALANCE,
            message=f"Insufficient balance. Maximum: {maximum:f} {asset.symbol}",
            details={"max_amount": f"{maximum:f}", "symbol": asset.symbol},
        )
    return ValidationResult(accepted=True, amount=amount)
