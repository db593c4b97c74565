from __future__ import annotations


class PaymentDomainError(ValueError):
    code = "payment_error"

    def __init__(self, message: str, *, field: str | None = None):
        super().__init__(message)
        self.field = field


class PaymentValidationError(PaymentDomainError):
    code = "validation_error"


class PaymentNotFoundError(PaymentDomainError):
    code = "not_found"


class UnknownPaymentProviderError(PaymentNotFoundError):
    code = "unknown_provider"


class OrderNotPayableError(PaymentDomainError):
    code = "illegal_state"


class PaymentAlreadyInProgressError(PaymentDomainError):
    code = "conflict"

    def __init__(self, message: str = "Payment already initialized for this order", *, field: str | None = "order_id"):
        super().__init__(message, field=field)


class PaymentGatewayError(PaymentDomainError):
    code = "gateway_error"


class WebhookSignatureError(PaymentDomainError):
    code = "invalid_signature"
