from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from apps.accounts.domain.caller_context import CallerContext
from apps.payments.application.facade import PaymentGatewayFacade
from apps.payments.application.services.settlement_service import PaymentSettlementService
from apps.payments.domain.errors import PaymentNotFoundError
from apps.payments.domain.policies import normalize_transaction_id
from apps.payments.domain.types import OPEN_PAYMENT_STATUSES, PaymentStatus
from apps.payments.models import Payment


@dataclass(frozen=True)
class VerifyPaymentCommand:
    caller: CallerContext
    transaction_id: str


@dataclass(frozen=True)
class VerifyPaymentResult:
    transaction_id: str
    status: str
    payment_status: str
    order_id: int
    amount: Decimal
    paid_at: datetime | None


def _verification_status(payment_status: str) -> str:
    if payment_status == PaymentStatus.COMPLETED:
        return "SUCCESS"
    if payment_status == PaymentStatus.FAILED:
        return "FAILED"
    return payment_status


def _result_for(payment: Payment) -> VerifyPaymentResult:
    return VerifyPaymentResult(
        transaction_id=payment.transaction_id,
        status=_verification_status(payment.status),
        payment_status=payment.status,
        order_id=payment.order_id,
        amount=payment.amount,
        paid_at=payment.paid_at,
    )


class VerifyPaymentUseCase:
    @staticmethod
    def execute(cmd: VerifyPaymentCommand) -> VerifyPaymentResult:
        transaction_id = normalize_transaction_id(cmd.transaction_id)
        payment = Payment.objects.filter(transaction_id=transaction_id, user_id=cmd.caller.user_id).first()
        if not payment:
            raise PaymentNotFoundError("Payment not found", field="transaction_id")

        if payment.status not in OPEN_PAYMENT_STATUSES:
            return _result_for(payment)

        # The gateway call happens outside the settlement transaction so no row
        # lock is held across network I/O.
        gateway = PaymentGatewayFacade.for_method(payment.method)
        verification = gateway.verify(transaction_id=transaction_id)

        outcome = PaymentSettlementService.settle(
            payment_id=payment.pk,
            succeeded=verification.success,
            source="verify",
        )
        return _result_for(outcome.payment)
