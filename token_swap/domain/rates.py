"""Rate and counter-amount arithmetic."""
from __future__ import annotations

from decimal import MAX_EMAX, MIN_EMIN, ROUND_HALF_UP, Decimal, localcontext

from .asset import Asset


AMOUNT_PLACES = 4
AMOUNT_QUANT = Decimal(1).scaleb(-AMOUNT_PLACES)


def rate(source: Asset, target: Asset) -> Decimal:
    # Prices are positive by construction of Asset, so no zero division here.
    return source.unit_price / target.unit_price


def _quantized_digits(value: Decimal) -> int:
    """Significant digits needed to hold ``value`` at four decimal places."""
    return max(value.adjusted(), 0) + 1 + AMOUNT_PLACES


def _quantize(value: Decimal) -> Decimal:
    # The default 28-digit context cannot quantize arbitrarily long amounts.
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, _quantized_digits(value))
        return value.quantize(AMOUNT_QUANT, rounding=ROUND_HALF_UP)


def convert(amount: Decimal, price_ratio: Decimal) -> Decimal:
    with localcontext() as ctx:
        ctx.Emax, ctx.Emin = MAX_EMAX, MIN_EMIN
        ctx.prec = max(ctx.prec, len(amount.as_tuple().digits) + len(price_ratio.as_tuple().digits))
        product = amount * price_ratio
        return _quantize(product)


def format_amount(value: Decimal) -> str:
    return f"{_quantize(value):f}"
