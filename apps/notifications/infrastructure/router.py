from __future__ import annotations

from dataclasses import dataclass

from django.conf import settings

from apps.notifications.domain.errors import EmailGatewayError
from apps.notifications.domain.ports import EmailGateway
from apps.notifications.infrastructure.gateways.smtp import SmtpEmailGateway


@dataclass(frozen=True)
class ResolvedEmailProvider:
    gateway: EmailGateway
    provider_name: str
    default_from_email: str


class EmailGatewayRouter:
    @staticmethod
    def resolve() -> ResolvedEmailProvider:
        default_from = (getattr(settings, "DEFAULT_FROM_EMAIL", "") or "").strip()
        if not default_from:
            raise EmailGatewayError("DEFAULT_FROM_EMAIL is not configured.")

        provider_name = (getattr(settings, "EMAIL_PROVIDER", "smtp") or "smtp").strip().lower()
        if provider_name == "smtp":
            return ResolvedEmailProvider(
                gateway=SmtpEmailGateway(),
                provider_name="smtp",
                default_from_email=default_from,
            )

        raise EmailGatewayError(f"Unknown email provider: {provider_name}")
