from __future__ import annotations

from apps.payments.domain.errors import PaymentValidationError, UnknownPaymentProviderError
from apps.payments.domain.ports import PaymentGatewayPort
from apps.payments.domain.types import GATEWAY_CODE_BY_METHOD, PaymentMethod
from apps.payments.infrastructure.gateways.cbe_birr import CbeBirrGateway
from apps.payments.infrastructure.gateways.chapa import ChapaGateway
from apps.payments.infrastructure.gateways.stripe_checkout import StripeCheckoutGateway


class PaymentGatewayFacade:
    _registry: dict[str, PaymentGatewayPort] = {
        ChapaGateway.code: ChapaGateway(),
        CbeBirrGateway.code: CbeBirrGateway(),
        StripeCheckoutGateway.code: StripeCheckoutGateway(),
    }

    @classmethod
    def get(cls, provider_code: str) -> PaymentGatewayPort:
        key = (provider_code or "").strip().lower()
        if key not in cls._registry:
            raise UnknownPaymentProviderError(f"Unknown payment provider: {provider_code}")
        return cls._registry[key]

    @classmethod
    def for_method(cls, method: PaymentMethod | str) -> PaymentGatewayPort:
        code = GATEWAY_CODE_BY_METHOD.get(method)
        if code is None:
            raise PaymentValidationError("Unsupported payment method", field="payment_method")
        return cls.get(code)

    @classmethod
    def available_providers(cls) -> list[dict]:
        return [{"code": adapter.code, "name": adapter.name} for adapter in cls._registry.values()]
