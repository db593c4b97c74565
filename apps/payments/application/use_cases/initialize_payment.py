from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from django.conf import settings
from django.db import IntegrityError, transaction

from apps.accounts.domain.caller_context import CallerContext
from apps.orders.domain.state_machine import OrderStatus
from apps.orders.models import Order
from apps.payments.application.facade import PaymentGatewayFacade
from apps.payments.domain.errors import (
    OrderNotPayableError,
    PaymentAlreadyInProgressError,
    PaymentNotFoundError,
)
from apps.payments.domain.policies import parse_online_payment_method
from apps.payments.domain.types import OPEN_PAYMENT_STATUSES, PaymentStatus
from apps.payments.models import Payment

logger = logging.getLogger("balmuya.payments")

_UNPAYABLE_ORDER_STATUSES = frozenset({OrderStatus.CANCELLED, OrderStatus.REFUNDED})


@dataclass(frozen=True)
class InitializePaymentCommand:
    caller: CallerContext
    order_id: int
    method: str


@dataclass(frozen=True)
class InitializePaymentResult:
    payment_id: int
    order_id: int
    method: str
    payment_url: str
    transaction_id: str
    amount: Decimal
    currency: str


class InitializePaymentUseCase:
    @staticmethod
    @transaction.atomic
    def execute(cmd: InitializePaymentCommand) -> InitializePaymentResult:
        method = parse_online_payment_method(cmd.method)

        # The order row lock serialises concurrent initialisations for one order.
        order = (
            Order.objects.select_for_update()
            .filter(id=cmd.order_id, buyer_id=cmd.caller.user_id)
            .first()
        )
        if not order:
            raise PaymentNotFoundError("Order not found", field="order_id")
        if order.status in _UNPAYABLE_ORDER_STATUSES:
            raise OrderNotPayableError(f"Order is {order.status} and cannot be paid.", field="order_id")
        if order.payment_status == PaymentStatus.COMPLETED:
            raise OrderNotPayableError("Order is already paid.", field="order_id")

        open_statuses = [status.value for status in OPEN_PAYMENT_STATUSES]
        if Payment.objects.filter(order_id=order.pk, status__in=open_statuses).exists():
            raise PaymentAlreadyInProgressError()

        gateway = PaymentGatewayFacade.for_method(method)
        try:
            with transaction.atomic():
                payment = Payment.objects.create(
                    order=order,
                    user_id=cmd.caller.user_id,
                    amount=order.total,
                    currency=settings.PAYMENT_CURRENCY,
                    method=method.value,
                    status=PaymentStatus.PENDING.value,
                )
        except IntegrityError as exc:
            raise PaymentAlreadyInProgressError() from exc

        # Called under the order row lock so a gateway failure rolls back the
        # payment row. Adapters doing network I/O here must bound their timeout.
        redirect = gateway.initialize(payment=payment)
        payment.transaction_id = redirect.transaction_id
        payment.payment_url = redirect.payment_url
        payment.save(update_fields=["transaction_id", "payment_url", "updated_at"])

        if order.payment_status != PaymentStatus.PENDING:
            order.payment_status = PaymentStatus.PENDING.value
            order.save(update_fields=["payment_status", "updated_at"])

        logger.info(
            "payment_initialized",
            extra={
                "payment_id": payment.pk,
                "order_id": order.pk,
                "transaction_id": payment.transaction_id,
                "provider": gateway.code,
            },
        )
        return InitializePaymentResult(
            payment_id=payment.pk,
            order_id=order.pk,
            method=payment.method,
            payment_url=payment.payment_url,
            transaction_id=payment.transaction_id,
            amount=payment.amount,
            currency=payment.currency,
        )
