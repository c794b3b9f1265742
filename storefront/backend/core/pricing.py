"""Pricing, stock and cart-total rules."""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

LOW_STOCK_THRESHOLD = 10
FREE_SHIPPING_OVER = 1000.0
FLAT_SHIPPING_FEE = 99.0


class StockStatus(str, Enum):
    OUT_OF_STOCK = "out_of_stock"
    LOW_STOCK = "low_stock"
    IN_STOCK = "in_stock"

    @property
    def label(self) -> str:
        return {
            StockStatus.OUT_OF_STOCK: "Out of Stock",
            StockStatus.LOW_STOCK: "Only Few Left",
            StockStatus.IN_STOCK: "In Stock",
        }[self]


def stock_status(stock_quantity: int | None, threshold: int = LOW_STOCK_THRESHOLD) -> StockStatus:
    """0 → out of stock, 0 < n < threshold → low stock, anything else in stock.

    An unknown quantity counts as in stock.
    """
    if stock_quantity is None:
        return StockStatus.IN_STOCK
    if stock_quantity <= 0:
        return StockStatus.OUT_OF_STOCK
    if stock_quantity < threshold:
        return StockStatus.LOW_STOCK
    return StockStatus.IN_STOCK


def discount_percent(original_price: float | None, discount_price: float | None) -> int:
    """``round((1 - discount/original) * 100)`` with halves rounded up, floored at 0."""
    if not original_price or original_price <= 0 or discount_price is None:
        return 0
    percent = math.floor((1 - discount_price / original_price) * 100 + 0.5)
    return max(percent, 0)


def effective_price(
    discount_price: float | None,
    original_price: float | None,
    fallback: float = 0.0,
) -> float:
    """Price charged: the discount price, else the original, else ``fallback``."""
    if discount_price is not None:
        return float(discount_price)
    if original_price is not None:
        return float(original_price)
    return float(fallback)


def shipping_fee(
    subtotal: float,
    free_over: float = FREE_SHIPPING_OVER,
    flat_fee: float = FLAT_SHIPPING_FEE,
) -> float:
    return flat_fee if 0 < subtotal < free_over else 0.0


@dataclass
class CartTotals:
    subtotal: float
    shipping_fee: float
    total: float


def cart_totals(
    lines: Iterable[tuple[float, int]],
    free_over: float = FREE_SHIPPING_OVER,
    flat_fee: float = FLAT_SHIPPING_FEE,
) -> CartTotals:
    """Totals for ``(unit_price, quantity)`` pairs."""
    subtotal = round(sum(price * quantity for price, quantity in lines), 2)
    fee = shipping_fee(subtotal, free_over, flat_fee)
    return CartTotals(subtotal=subtotal, shipping_fee=fee, total=round(subtotal + fee, 2))


def average_rating(ratings: list[int]) -> float:
    """Mean rating rounded to one decimal; 0.0 with no ratings."""
    if not ratings:
        return 0.0
    return round(sum(ratings) / len(ratings), 1)
