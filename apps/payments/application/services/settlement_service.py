from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import partial

from django.db import transaction
from django.utils import timezone

from apps.notifications.application.services.order_notifications import OrderNotificationService
from apps.orders.domain.state_machine import OrderStatus
from apps.orders.models import Order
from apps.payments.application.use_cases.refund_order_payments import (
    RefundOrderPaymentsCommand,
    RefundOrderPaymentsUseCase,
)
from apps.payments.domain.types import OPEN_PAYMENT_STATUSES, PaymentStatus
from apps.payments.models import Payment

logger = logging.getLogger("balmuya.payments")

_CLOSED_ORDER_STATUSES = frozenset({OrderStatus.CANCELLED, OrderStatus.REFUNDED})


@dataclass(frozen=True)
class SettlementOutcome:
    payment: Payment
    order: Order
    changed: bool


class PaymentSettlementService:
    """
    Apply a gateway verdict to a payment and its order.

    Only payments that are still open are touched; a payment that already
    reached a terminal state is returned as-is, so replayed verifications and
    duplicated webhooks have no further effect. A success for an order that
    was already cancelled is refunded at once and sends no confirmation.
    """

    @staticmethod
    @transaction.atomic
    def settle(*, payment_id: int, succeeded: bool, source: str) -> SettlementOutcome:
        payment = Payment.objects.select_for_update().get(pk=payment_id)
        order = Order.objects.select_for_update().get(pk=payment.order_id)

        if payment.status not in OPEN_PAYMENT_STATUSES:
            logger.info(
                "payment_settlement_skipped",
                extra={"payment_id": payment.pk, "status": payment.status, "source": source},
            )
            return SettlementOutcome(payment=payment, order=order, changed=False)

        now = timezone.now()
        open_statuses = [status.value for status in OPEN_PAYMENT_STATUSES]
        if succeeded and order.status in _CLOSED_ORDER_STATUSES:
            # Funds captured after the buyer cancelled go straight back.
            Payment.objects.filter(pk=payment.pk, status__in=open_statuses).update(
                status=PaymentStatus.COMPLETED.value, paid_at=now, updated_at=now
            )
            refund = RefundOrderPaymentsUseCase.execute(
                RefundOrderPaymentsCommand(order_id=order.pk, amount=order.total)
            )
            Order.objects.filter(pk=order.pk).update(
                payment_status=PaymentStatus.REFUNDED.value, paid_at=now, updated_at=now
            )
            logger.warning(
                "payment_refunded_for_closed_order",
                extra={
                    "order_id": order.pk,
                    "payment_id": payment.pk,
                    "order_status": order.status,
                    "refunded_payment_ids": list(refund.refunded_payment_ids),
                    "source": source,
                },
            )
        elif succeeded:
            Payment.objects.filter(pk=payment.pk, status__in=open_statuses).update(
                status=PaymentStatus.COMPLETED.value, paid_at=now, updated_at=now
            )
            order_changes = {"payment_status": PaymentStatus.COMPLETED.value, "paid_at": now, "updated_at": now}
            if order.status == OrderStatus.PENDING:
                order_changes["status"] = OrderStatus.CONFIRMED.value
            Order.objects.filter(pk=order.pk).update(**order_changes)
            transaction.on_commit(partial(OrderNotificationService.queue_order_confirmation, order_id=order.pk))
        else:
            Payment.objects.filter(pk=payment.pk, status__in=open_statuses).update(
                status=PaymentStatus.FAILED.value, updated_at=now
            )
            Order.objects.filter(
                pk=order.pk,
                payment_status__in=[PaymentStatus.PENDING.value, PaymentStatus.PROCESSING.value],
            ).update(payment_status=PaymentStatus.FAILED.value, updated_at=now)

        payment.refresh_from_db()
        order.refresh_from_db()
        logger.info(
            "payment_settled",
            extra={
                "payment_id": payment.pk,
                "order_id": order.pk,
                "transaction_id": payment.transaction_id,
                "status": payment.status,
                "source": source,
            },
        )
        return SettlementOutcome(payment=payment, order=order, changed=True)
