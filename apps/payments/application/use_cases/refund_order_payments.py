from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from apps.payments.domain.types import PaymentStatus
from apps.payments.models import Payment

logger = logging.getLogger("balmuya.payments")


@dataclass(frozen=True)
class RefundOrderPaymentsCommand:
    order_id: int
    amount: Decimal


@dataclass(frozen=True)
class RefundOrderPaymentsResult:
    refunded_payment_ids: tuple[int, ...]
    refund_amount: Decimal


class RefundOrderPaymentsUseCase:
    """Mark the captured payments of a cancelled order as refunded."""

    @staticmethod
    @transaction.atomic
    def execute(cmd: RefundOrderPaymentsCommand) -> RefundOrderPaymentsResult:
        payment_ids = list(
            Payment.objects.select_for_update()
            .filter(order_id=cmd.order_id, status=PaymentStatus.COMPLETED.value)
            .values_list("id", flat=True)
        )
        now = timezone.now()
        if payment_ids:
            Payment.objects.filter(pk__in=payment_ids).update(
                status=PaymentStatus.REFUNDED.value,
                refunded_at=now,
                refund_amount=cmd.amount,
                updated_at=now,
            )
        logger.info(
            "order_payments_refunded",
            extra={"order_id": cmd.order_id, "payment_ids": payment_ids, "amount": str(cmd.amount)},
        )
        return RefundOrderPaymentsResult(refunded_payment_ids=tuple(payment_ids), refund_amount=cmd.amount)
