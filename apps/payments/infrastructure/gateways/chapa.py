from __future__ import annotations

from apps.payments.domain.types import PaymentMethod
from apps.payments.infrastructure.gateways.sandbox_stub import SandboxStubGateway


class ChapaGateway(SandboxStubGateway):
    code = "chapa"
    name = "Chapa"
    method = PaymentMethod.CHAPA
    reference_prefix = "CHAPA"
    checkout_url = "https://checkout.chapa.co/checkout/payment/{reference}"
