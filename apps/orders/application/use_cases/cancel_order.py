from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from apps.accounts.domain.caller_context import CallerContext
from apps.orders.domain.errors import (
    OrderConcurrentUpdateError,
    OrderNotCancellableError,
    OrderNotFoundError,
)
from apps.orders.domain.policies import normalize_reason
from apps.orders.domain.state_machine import OrderStateMachine, OrderStatus
from apps.orders.models import Order
from apps.payments.application.use_cases.refund_order_payments import (
    RefundOrderPaymentsCommand,
    RefundOrderPaymentsUseCase,
)
from apps.payments.domain.types import PaymentStatus

logger = logging.getLogger("balmuya.orders")


@dataclass(frozen=True)
class CancelOrderCommand:
    caller: CallerContext
    order_id: int
    reason: str = ""


@dataclass(frozen=True)
class CancelOrderResult:
    order: Order
    refund_amount: Decimal
    refunded_payment_ids: tuple[int, ...] = ()


class CancelOrderUseCase:
    """
    Buyer cancellation.

    This path is separate from seller status updates: only the buyer who
    placed the order may use it, and only while the order is PENDING or
    CONFIRMED. A captured payment is refunded in full.
    """

    @staticmethod
    @transaction.atomic
    def execute(cmd: CancelOrderCommand) -> CancelOrderResult:
        reason = normalize_reason(cmd.reason)

        order = Order.objects.select_for_update().filter(id=cmd.order_id, buyer_id=cmd.caller.user_id).first()
        if not order:
            raise OrderNotFoundError("Order not found")
        if not OrderStateMachine.is_cancellable(order.status):
            raise OrderNotCancellableError(current=order.status)

        was_paid = order.payment_status == PaymentStatus.COMPLETED
        now = timezone.now()
        changes: dict = {
            "status": OrderStatus.CANCELLED.value,
            "cancelled_at": now,
            "cancelled_by_id": cmd.caller.user_id,
            "cancellation_reason": reason,
            "updated_at": now,
        }
        if was_paid:
            changes["payment_status"] = PaymentStatus.REFUNDED.value

        updated = Order.objects.filter(pk=order.pk, status=order.status).update(**changes)
        if updated != 1:
            raise OrderConcurrentUpdateError("Order was modified concurrently, retry the request.", field="status")

        refund_amount = Decimal("0.00")
        refunded_ids: tuple[int, ...] = ()
        if was_paid:
            refund = RefundOrderPaymentsUseCase.execute(
                RefundOrderPaymentsCommand(order_id=order.pk, amount=order.total)
            )
            refund_amount = refund.refund_amount
            refunded_ids = refund.refunded_payment_ids

        order.refresh_from_db()
        logger.info(
            "order_cancelled",
            extra={
                "order_id": order.pk,
                "actor_id": cmd.caller.user_id,
                "refund_amount": str(refund_amount),
                "refunded_payment_ids": list(refunded_ids),
            },
        )
        return CancelOrderResult(order=order, refund_amount=refund_amount, refunded_payment_ids=refunded_ids)
