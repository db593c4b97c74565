from __future__ import annotations

import secrets
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from .errors import OrderValidationError
from .state_machine import DeliveryOption, OrderStatus

_CENT = Decimal("0.01")
_ZERO = Decimal("0.00")

MAX_LINES_PER_ORDER = 50
MAX_REASON_LENGTH = 500
MAX_TRACKING_NUMBER_LENGTH = 100


@dataclass(frozen=True)
class OrderLine:
    product_id: int
    quantity: int


@dataclass(frozen=True)
class PricedLine:
    product_id: int
    quantity: int
    unit_price: Decimal

    @property
    def line_total(self) -> Decimal:
        return (self.unit_price * self.quantity).quantize(_CENT)


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    shipping: Decimal
    tax: Decimal
    discount: Decimal
    total: Decimal


def normalize_order_lines(raw_lines: Iterable[OrderLine]) -> list[OrderLine]:
    """Validate requested lines and merge repeated products, keeping first-seen order."""
    quantities: dict[int, int] = {}
    for line in raw_lines or ():
        if not isinstance(line.product_id, int) or line.product_id <= 0:
            raise OrderValidationError("Each item needs a valid product id.", field="items")
        if isinstance(line.quantity, bool) or not isinstance(line.quantity, int) or line.quantity <= 0:
            raise OrderValidationError("Item quantity must be a positive integer.", field="items")
        quantities[line.product_id] = quantities.get(line.product_id, 0) + line.quantity

    if not quantities:
        raise OrderValidationError("Order items are required.", field="items")
    if len(quantities) > MAX_LINES_PER_ORDER:
        raise OrderValidationError(f"An order can hold at most {MAX_LINES_PER_ORDER} products.", field="items")
    return [OrderLine(product_id=product_id, quantity=qty) for product_id, qty in quantities.items()]


def parse_order_status(raw: str) -> OrderStatus:
    try:
        return OrderStatus((raw or "").strip().upper())
    except ValueError as exc:
        raise OrderValidationError(f"Unknown order status: {raw}", field="status") from exc


def parse_delivery_option(raw: str | None) -> DeliveryOption:
    if not raw:
        return DeliveryOption.SELLER_DELIVERY
    try:
        return DeliveryOption(raw.strip().upper())
    except ValueError as exc:
        raise OrderValidationError(f"Unknown delivery option: {raw}", field="delivery_option") from exc


def shipping_fee_for(option: DeliveryOption, *, platform_fee: Decimal) -> Decimal:
    if option == DeliveryOption.PLATFORM_DELIVERY:
        return Decimal(platform_fee).quantize(_CENT)
    return _ZERO


def compute_order_totals(
    lines: Iterable[PricedLine],
    *,
    shipping: Decimal = _ZERO,
    tax: Decimal = _ZERO,
    discount: Decimal = _ZERO,
) -> OrderTotals:
    subtotal = sum((line.line_total for line in lines), _ZERO).quantize(_CENT)
    totals = OrderTotals(
        subtotal=subtotal,
        shipping=Decimal(shipping).quantize(_CENT),
        tax=Decimal(tax).quantize(_CENT),
        discount=Decimal(discount).quantize(_CENT),
        total=(subtotal + shipping + tax - discount).quantize(_CENT),
    )
    assert_totals_consistent(totals)
    return totals


def assert_totals_consistent(totals: OrderTotals) -> None:
    for field in ("subtotal", "shipping", "tax", "discount", "total"):
        if getattr(totals, field) < 0:
            raise OrderValidationError(f"Order {field} cannot be negative.", field=field)
    expected = (totals.subtotal + totals.shipping + totals.tax - totals.discount).quantize(_CENT)
    if totals.total.quantize(_CENT) != expected:
        raise OrderValidationError("Order total does not match its components.", field="total")


def generate_order_number(*, now_ms: int | None = None) -> str:
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"BALMUYA-{stamp}-{secrets.token_hex(3).upper()}"


def normalize_reason(raw: str | None) -> str:
    reason = (raw or "").strip()
    if len(reason) > MAX_REASON_LENGTH:
        raise OrderValidationError(
            f"Cancellation reason must be {MAX_REASON_LENGTH} characters or fewer.", field="reason"
        )
    return reason


def normalize_tracking_number(raw: str | None) -> str:
    value = (raw or "").strip()
    if len(value) > MAX_TRACKING_NUMBER_LENGTH:
        raise OrderValidationError("Tracking number is too long.", field="tracking_number")
    return value
