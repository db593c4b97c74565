from __future__ import annotations

from enum import StrEnum


class PaymentStatus(StrEnum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class PaymentMethod(StrEnum):
    CHAPA = "CHAPA"
    CBE_BIRR = "CBE_BIRR"
    STRIPE = "STRIPE"
    CASH_ON_DELIVERY = "CASH_ON_DELIVERY"


# A payment in one of these states blocks a new attempt for the same order.
OPEN_PAYMENT_STATUSES = frozenset({PaymentStatus.PENDING, PaymentStatus.PROCESSING})

ONLINE_PAYMENT_METHODS = frozenset({PaymentMethod.CHAPA, PaymentMethod.CBE_BIRR, PaymentMethod.STRIPE})

GATEWAY_CODE_BY_METHOD = {
    PaymentMethod.CHAPA: "chapa",
    PaymentMethod.CBE_BIRR: "cbe-birr",
    PaymentMethod.STRIPE: "stripe",
}
