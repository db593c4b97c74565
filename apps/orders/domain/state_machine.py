from __future__ import annotations

from enum import StrEnum
from types import MappingProxyType
from typing import Mapping

from .errors import IllegalOrderTransitionError


class OrderStatus(StrEnum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class DeliveryOption(StrEnum):
    SELLER_DELIVERY = "SELLER_DELIVERY"
    BUYER_PICKUP = "BUYER_PICKUP"
    SPLIT_DELIVERY = "SPLIT_DELIVERY"
    PLATFORM_DELIVERY = "PLATFORM_DELIVERY"
    SELLER_RESPONSIBLE = "SELLER_RESPONSIBLE"
    BUYER_RESPONSIBLE = "BUYER_RESPONSIBLE"
    SPLIT_RESPONSIBILITY = "SPLIT_RESPONSIBILITY"


ORDER_TRANSITIONS: Mapping[OrderStatus, frozenset[OrderStatus]] = MappingProxyType(
    {
        OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
        OrderStatus.CONFIRMED: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
        OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED}),
        OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
        OrderStatus.DELIVERED: frozenset(),
        OrderStatus.CANCELLED: frozenset(),
        OrderStatus.REFUNDED: frozenset(),
    }
)

TERMINAL_ORDER_STATUSES = frozenset(status for status, targets in ORDER_TRANSITIONS.items() if not targets)

# Buyers may only cancel before the seller starts processing.
CANCELLABLE_ORDER_STATUSES = frozenset(
    status for status, targets in ORDER_TRANSITIONS.items() if OrderStatus.CANCELLED in targets
)


class OrderStateMachine:
    """
    Order status transitions.

    The table is fixed at import time; every status change made by a seller or
    an admin is checked against it before it is written.
    """

    @staticmethod
    def allowed_next(current: OrderStatus) -> frozenset[OrderStatus]:
        return ORDER_TRANSITIONS.get(OrderStatus(current), frozenset())

    @staticmethod
    def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
        return OrderStatus(target) in OrderStateMachine.allowed_next(current)

    @staticmethod
    def assert_transition(current: OrderStatus, target: OrderStatus) -> None:
        if not OrderStateMachine.can_transition(current, target):
            raise IllegalOrderTransitionError(current=OrderStatus(current), target=OrderStatus(target))

    @staticmethod
    def is_cancellable(current: OrderStatus) -> bool:
        return OrderStatus(current) in CANCELLABLE_ORDER_STATUSES

    @staticmethod
    def is_terminal(current: OrderStatus) -> bool:
        return OrderStatus(current) in TERMINAL_ORDER_STATUSES
