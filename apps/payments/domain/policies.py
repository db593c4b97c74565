from __future__ import annotations

from .errors import PaymentValidationError
from .types import ONLINE_PAYMENT_METHODS, PaymentMethod


def parse_payment_method(raw: str | None) -> PaymentMethod:
    try:
        return PaymentMethod((raw or "").strip().upper())
    except ValueError as exc:
        raise PaymentValidationError("Unsupported payment method", field="payment_method") from exc


def parse_online_payment_method(raw: str | None) -> PaymentMethod:
    method = parse_payment_method(raw)
    if method not in ONLINE_PAYMENT_METHODS:
        raise PaymentValidationError("Unsupported payment method", field="payment_method")
    return method


def normalize_transaction_id(raw: str | None) -> str:
    value = (raw or "").strip()
    if not value:
        raise PaymentValidationError("Transaction ID is required", field="transaction_id")
    if len(value) > 100:
        raise PaymentValidationError("Transaction ID is too long.", field="transaction_id")
    return value
