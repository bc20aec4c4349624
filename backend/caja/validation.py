from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any


# Maximum amount: 9,999,999.99 (999,999,999 cents)
# Keeps money columns well inside a signed 32-bit integer
MAX_AMOUNT_CENTS = 999_999_999

_CENT = Decimal("0.01")


class ValidationError(ValueError):
    """400-level input problem, identified by a stable machine code."""

    status_code = 400

    def __init__(self, code: str, details: dict | None = None):
        super().__init__(code)
        self.code = code
        self.details = details or {}


def to_cents(value: Any, code: str) -> int:
    """
    Convert a decimal amount (number or numeric string) to integer cents.

    Rounds half-up to the cent. Rejects booleans, NaN, infinities, and
    anything that does not parse as a number; ``code`` is the error raised.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(code)
    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise ValidationError(code)
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(code)
    if not amount.is_finite():
        raise ValidationError(code)
    # quantize() overflows the decimal context on huge magnitudes
    if abs(amount) > Decimal(MAX_AMOUNT_CENTS) / 100:
        raise ValidationError(code)

    cents = int((amount.quantize(_CENT, rounding=ROUND_HALF_UP) * 100).to_integral_value())
    if abs(cents) > MAX_AMOUNT_CENTS:
        raise ValidationError(code)
    return cents


def from_cents(cents: int | None) -> float | None:
    """Integer cents to a JSON-friendly decimal amount."""
    if cents is None:
        return None
    return float(Decimal(cents) / 100)


def positive_cents(value: Any, code: str) -> int:
    """Like to_cents, but the amount must be strictly positive."""
    cents = to_cents(value, code)
    if cents <= 0:
        raise ValidationError(code)
    return cents


def optional_int(value: Any, code: str) -> int | None:
    """Parse an optional integer id (None / "" -> None)."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(code)
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        value = value.strip()
        # isdigit() also accepts superscripts, which int() rejects
        if value.isascii() and value.isdecimal():
            return int(value)
    raise ValidationError(code)


def positive_int(value: Any, code: str) -> int:
    parsed = optional_int(value, code)
    if parsed is None or parsed <= 0:
        raise ValidationError(code)
    return parsed


@dataclass(frozen=True)
class OrderItemInput:
    """One validated order line."""
    product_id: int | None
    description: str
    quantity: int
    unit_price_cents: int
    total_cents: int


@dataclass(frozen=True)
class SaleItemInput:
    """One validated direct-sale line."""
    product_id: int | None
    qty: int
    price_cents: int
    manual: bool


def parse_order_items(raw: Any, code: str = "INVALID_ITEMS") -> list[OrderItemInput]:
    """
    Validate an order item list.

    Each item: {product_id?, description?, quantity, unit_price, total?}.
    When total is omitted it is quantity x unit_price.
    """
    if not isinstance(raw, list):
        raise ValidationError(code)

    items = []
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ValidationError(code, {"index": index})
        try:
            quantity = positive_int(entry.get("quantity"), code)
            unit_price_cents = to_cents(entry.get("unit_price"), code)
            if unit_price_cents < 0:
                raise ValidationError(code)
            if entry.get("total") is None:
                total_cents = unit_price_cents * quantity
            else:
                total_cents = to_cents(entry.get("total"), code)
                if total_cents < 0:
                    raise ValidationError(code)
            product_id = optional_int(entry.get("product_id"), code)
        except ValidationError:
            raise ValidationError(code, {"index": index})

        description = entry.get("description") or ""
        items.append(OrderItemInput(
            product_id=product_id,
            description=str(description).strip()[:255],
            quantity=quantity,
            unit_price_cents=unit_price_cents,
            total_cents=total_cents,
        ))
    return items


def parse_sale_items(raw: Any, code: str = "INVALID_ITEMS") -> list[SaleItemInput]:
    """
    Validate a direct-sale item list.

    Each item: {product_id?, qty, price, manual?}.
    """
    if not isinstance(raw, list):
        raise ValidationError(code)

    items = []
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ValidationError(code, {"index": index})
        try:
            qty = positive_int(entry.get("qty"), code)
            price_cents = to_cents(entry.get("price"), code)
            if price_cents < 0:
                raise ValidationError(code)
            product_id = optional_int(entry.get("product_id"), code)
        except ValidationError:
            raise ValidationError(code, {"index": index})

        items.append(SaleItemInput(
            product_id=product_id,
            qty=qty,
            price_cents=price_cents,
            manual=bool(entry.get("manual", False)),
        ))
    return items
