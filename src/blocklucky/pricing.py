from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import NamedTuple

from .project_constants import (
    DISCOUNT_TIERS,
    MAX_BATCH_QUANTITY,
    NATIVE_DECIMALS,
    TICKET_PRICE,
)


class PriceQuote(NamedTuple):
    total_price: int
    discount_percent: int


def discount_for(quantity: int) -> int:
    for min_quantity, percent in DISCOUNT_TIERS:
        if quantity >= min_quantity:
            return percent
    return 0


def calculate_price(quantity: int, ticket_price: int = TICKET_PRICE) -> PriceQuote:
    """
    Total price for a batch of `quantity` tickets, rounded down to base units.
    Quantities outside [1, MAX_BATCH_QUANTITY] quote as (0, 0).
    """
    if quantity < 1 or quantity > MAX_BATCH_QUANTITY:
        return PriceQuote(0, 0)

    discount = discount_for(quantity)
    base_price = ticket_price * quantity
    return PriceQuote(base_price * (100 - discount) // 100, discount)


def to_coins(raw_amount: int) -> Decimal:
    amount = Decimal(raw_amount).scaleb(-NATIVE_DECIMALS).normalize()
    # normalize() turns whole amounts like 10 into 1E+1
    if amount.as_tuple().exponent > 0:
        return amount.quantize(Decimal(1))
    return amount


def from_coins(amount: str) -> int:
    try:
        value = Decimal(amount).scaleb(NATIVE_DECIMALS)
    except InvalidOperation:
        raise ValueError(f"Amount {amount!r} is not a number.")
    if not value.is_finite() or value < 0:
        raise ValueError(f"Amount {amount!r} must be a non-negative number.")
    if value != value.to_integral_value():
        raise ValueError(f"Amount {amount} has more than {NATIVE_DECIMALS} decimals.")
    return int(value)
