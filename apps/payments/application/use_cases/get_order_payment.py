from __future__ import annotations

from dataclasses import dataclass

from apps.accounts.domain.caller_context import CallerContext
from apps.orders.models import Order
from apps.payments.domain.errors import PaymentNotFoundError
from apps.payments.models import Payment


@dataclass(frozen=True)
class GetOrderPaymentCommand:
    caller: CallerContext
    order_id: int


class GetOrderPaymentUseCase:
    """Latest payment of an order, readable only by the buyer who placed it."""

    @staticmethod
    def execute(cmd: GetOrderPaymentCommand) -> Payment:
        if not Order.objects.filter(id=cmd.order_id, buyer_id=cmd.caller.user_id).exists():
            raise PaymentNotFoundError("Order not found", field="order_id")
        payment = (
            Payment.objects.filter(order_id=cmd.order_id, user_id=cmd.caller.user_id)
            .order_by("-created_at", "-id")
            .first()
        )
        if not payment:
            raise PaymentNotFoundError("Payment not found", field="order_id")
        return payment
