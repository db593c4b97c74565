from __future__ import annotations

import hashlib
import hmac
import json
from typing import Mapping
from uuid import uuid4

from django.conf import settings

from apps.payments.domain.errors import PaymentValidationError, WebhookSignatureError
from apps.payments.domain.ports import PaymentRedirect, VerificationResult, VerifiedEvent
from apps.payments.domain.types import PaymentMethod


class SandboxStubGateway:
    """
    Hosted-checkout gateway without a live provider behind it.

    `initialize` hands out a checkout URL and a provider reference, `verify`
    reports success. Webhooks are authenticated with an HMAC-SHA256 of the raw
    body keyed by the gateway's webhook secret, sent hex encoded in the
    `X-Signature` header.
    """

    code = "sandbox"
    name = "Sandbox Stub"
    method: PaymentMethod
    reference_prefix = "SANDBOX"
    checkout_url = "https://sandbox.invalid/checkout/{reference}"
    success_statuses: frozenset[str] = frozenset({"success"})
    signature_header = "X-Signature"

    def initialize(self, *, payment) -> PaymentRedirect:
        reference = f"{self.reference_prefix}-{uuid4().hex[:16].upper()}"
        return PaymentRedirect(payment_url=self.checkout_url.format(reference=reference), transaction_id=reference)

    def verify(self, *, transaction_id: str) -> VerificationResult:
        return VerificationResult(transaction_id=transaction_id, success=True)

    def webhook_secret(self) -> str:
        config = (getattr(settings, "PAYMENT_GATEWAYS", {}) or {}).get(self.code) or {}
        return str(config.get("webhook_secret") or "")

    def sign(self, body: bytes) -> str:
        return hmac.new(self.webhook_secret().encode("utf-8"), body, hashlib.sha256).hexdigest()

    def verify_event(self, *, body: bytes, headers: Mapping[str, str]) -> VerifiedEvent:
        signature = (headers.get(self.signature_header) or "").strip()
        if not self.webhook_secret() or not signature:
            raise WebhookSignatureError("Missing signature.")
        if not hmac.compare_digest(self.sign(body), signature):
            raise WebhookSignatureError("Invalid signature.")

        try:
            payload = json.loads(body or b"{}")
        except ValueError as exc:
            raise PaymentValidationError("Invalid payload.") from exc
        if not isinstance(payload, dict):
            raise PaymentValidationError("Invalid payload.")

        transaction_id, status = self.extract_event(payload)
        transaction_id = str(transaction_id or "").strip()
        if not transaction_id:
            raise PaymentValidationError("Transaction ID is required", field="transaction_id")
        status = str(status or "").strip().lower()
        return VerifiedEvent(
            transaction_id=transaction_id,
            status=status,
            succeeded=status in self.success_statuses,
        )

    def extract_event(self, payload: dict) -> tuple[str | None, str | None]:
        return payload.get("transaction_id"), payload.get("status")
