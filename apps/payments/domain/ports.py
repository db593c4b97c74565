from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Protocol

from .types import PaymentMethod


@dataclass(frozen=True)
class PaymentRedirect:
    payment_url: str
    transaction_id: str


@dataclass(frozen=True)
class VerificationResult:
    transaction_id: str
    success: bool


@dataclass(frozen=True)
class VerifiedEvent:
    transaction_id: str
    status: str
    succeeded: bool


class PaymentGatewayPort(Protocol):
    code: str
    name: str
    method: PaymentMethod

    def initialize(self, *, payment) -> PaymentRedirect:
        ...

    def verify(self, *, transaction_id: str) -> VerificationResult:
        ...

    def verify_event(self, *, body: bytes, headers: Mapping[str, str]) -> VerifiedEvent:
        ...
