from __future__ import annotations

from apps.payments.domain.types import PaymentMethod
from apps.payments.infrastructure.gateways.sandbox_stub import SandboxStubGateway


class CbeBirrGateway(SandboxStubGateway):
    code = "cbe-birr"
    name = "CBE Birr"
    method = PaymentMethod.CBE_BIRR
    reference_prefix = "CBEBIRR"
    checkout_url = "https://cbe-birr.com/payment/{reference}"

    def extract_event(self, payload: dict) -> tuple[str | None, str | None]:
        return payload.get("transactionId"), payload.get("status")
