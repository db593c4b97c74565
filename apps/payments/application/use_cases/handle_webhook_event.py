from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping

from apps.payments.application.facade import PaymentGatewayFacade
from apps.payments.application.services.settlement_service import PaymentSettlementService
from apps.payments.domain.errors import PaymentNotFoundError
from apps.payments.models import Payment

logger = logging.getLogger("balmuya.payments")


@dataclass(frozen=True)
class HandleWebhookEventCommand:
    provider_code: str
    headers: Mapping[str, str]
    body: bytes


@dataclass(frozen=True)
class HandleWebhookEventResult:
    transaction_id: str
    payment_status: str
    order_id: int
    changed: bool


class HandleWebhookEventUseCase:
    @staticmethod
    def execute(cmd: HandleWebhookEventCommand) -> HandleWebhookEventResult:
        gateway = PaymentGatewayFacade.get(cmd.provider_code)
        event = gateway.verify_event(body=cmd.body, headers=cmd.headers)

        payment = (
            Payment.objects.filter(transaction_id=event.transaction_id, method=gateway.method.value)
            .only("id")
            .first()
        )
        if not payment:
            logger.warning(
                "webhook_payment_not_found",
                extra={"provider": gateway.code, "transaction_id": event.transaction_id},
            )
            raise PaymentNotFoundError("Payment not found", field="transaction_id")

        outcome = PaymentSettlementService.settle(
            payment_id=payment.pk,
            succeeded=event.succeeded,
            source=f"webhook:{gateway.code}",
        )
        return HandleWebhookEventResult(
            transaction_id=event.transaction_id,
            payment_status=outcome.payment.status,
            order_id=outcome.order.pk,
            changed=outcome.changed,
        )
