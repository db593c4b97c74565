from __future__ import annotations

import logging
from dataclasses import dataclass

from django.db import transaction
from django.utils import timezone

from apps.accounts.domain.caller_context import CallerContext
from apps.orders.application.selectors import orders_visible_to
from apps.orders.domain.errors import (
    OrderAccessDeniedError,
    OrderConcurrentUpdateError,
    OrderNotFoundError,
)
from apps.orders.domain.policies import normalize_tracking_number, parse_order_status
from apps.orders.domain.state_machine import OrderStateMachine, OrderStatus
from apps.orders.models import Order

logger = logging.getLogger("balmuya.orders")


@dataclass(frozen=True)
class UpdateOrderStatusCommand:
    caller: CallerContext
    order_id: int
    status: str
    tracking_number: str | None = None


@dataclass(frozen=True)
class UpdateOrderStatusResult:
    order: Order
    previous_status: OrderStatus


class UpdateOrderStatusUseCase:
    """Seller or admin driven status change, gated by the transition table."""

    @staticmethod
    @transaction.atomic
    def execute(cmd: UpdateOrderStatusCommand) -> UpdateOrderStatusResult:
        target = parse_order_status(cmd.status)
        tracking_number = normalize_tracking_number(cmd.tracking_number)

        order = orders_visible_to(cmd.caller).select_for_update().filter(id=cmd.order_id).first()
        if not order:
            raise OrderNotFoundError("Order not found")
        if not (cmd.caller.is_admin or order.seller_id == cmd.caller.user_id):
            raise OrderAccessDeniedError("Only the seller or an admin can update this order's status.")

        current = OrderStatus(order.status)
        OrderStateMachine.assert_transition(current, target)

        now = timezone.now()
        changes: dict = {"status": target.value, "updated_at": now}
        if tracking_number:
            changes["tracking_number"] = tracking_number
        if target == OrderStatus.SHIPPED:
            changes["shipped_at"] = now
        elif target == OrderStatus.DELIVERED:
            changes["delivered_at"] = now
        elif target == OrderStatus.CANCELLED:
            changes["cancelled_at"] = now
            changes["cancelled_by_id"] = cmd.caller.user_id

        # Conditional on the status read above.
        updated = Order.objects.filter(pk=order.pk, status=current.value).update(**changes)
        if updated != 1:
            raise OrderConcurrentUpdateError("Order was modified concurrently, retry the request.", field="status")

        order.refresh_from_db()
        logger.info(
            "order_status_changed",
            extra={
                "order_id": order.pk,
                "from_status": current.value,
                "to_status": target.value,
                "actor_id": cmd.caller.user_id,
                "actor_role": cmd.caller.role.value,
            },
        )
        return UpdateOrderStatusResult(order=order, previous_status=current)
