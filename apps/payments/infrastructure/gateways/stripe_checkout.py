from __future__ import annotations

from apps.payments.domain.types import PaymentMethod
from apps.payments.infrastructure.gateways.sandbox_stub import SandboxStubGateway


class StripeCheckoutGateway(SandboxStubGateway):
    code = "stripe"
    name = "Stripe"
    method = PaymentMethod.STRIPE
    reference_prefix = "STRIPE"
    checkout_url = "https://checkout.stripe.com/pay/{reference}"
    success_statuses = frozenset({"succeeded"})

    def extract_event(self, payload: dict) -> tuple[str | None, str | None]:
        obj = (payload.get("data") or {}).get("object") or {}
        if not isinstance(obj, dict):
            return None, None
        return obj.get("id"), obj.get("status")
