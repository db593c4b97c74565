from __future__ import annotations

import logging
from dataclasses import dataclass

from django.conf import settings
from django.template.loader import render_to_string
from django.utils import timezone

from apps.notifications.domain.errors import EmailGatewayError
from apps.notifications.domain.ports import OutgoingEmail
from apps.notifications.infrastructure.router import EmailGatewayRouter
from apps.notifications.models import EmailLog
from apps.orders.models import Order

logger = logging.getLogger("balmuya.notifications")


@dataclass(frozen=True)
class SendOrderConfirmationCommand:
    email_log_id: int


@dataclass(frozen=True)
class SendOrderConfirmationResult:
    sent: bool
    skipped: bool = False


def build_order_confirmation(*, order: Order, recipient_name: str) -> OutgoingEmail:
    context = {
        "name": recipient_name or "there",
        "order": order,
        "currency": settings.PAYMENT_CURRENCY,
        "order_url": f"{settings.FRONTEND_URL}/orders/{order.pk}",
    }
    return OutgoingEmail(
        to_email=order.buyer.email,
        subject=f"Order Confirmation - {order.order_number}",
        text=render_to_string("notifications/order_confirmation.txt", context),
        html=render_to_string("notifications/order_confirmation.html", context),
    )


class SendOrderConfirmationUseCase:
    """Deliver one queued order confirmation. A log row is sent at most once."""

    @staticmethod
    def execute(cmd: SendOrderConfirmationCommand) -> SendOrderConfirmationResult:
        log = EmailLog.objects.select_related("order", "order__buyer").filter(id=cmd.email_log_id).first()
        if not log or log.status != EmailLog.STATUS_QUEUED:
            return SendOrderConfirmationResult(sent=False, skipped=True)

        order = log.order
        if not (order.buyer.email or "").strip():
            _mark_failed(log, "Buyer has no email address.")
            return SendOrderConfirmationResult(sent=False)

        message = build_order_confirmation(order=order, recipient_name=order.buyer.first_name)
        try:
            resolved = EmailGatewayRouter.resolve()
            resolved.gateway.send_email(message=message, from_email=resolved.default_from_email)
        except EmailGatewayError as exc:
            _mark_failed(log, str(exc))
            logger.warning(
                "order_confirmation_failed",
                extra={"order_id": order.pk, "email_log_id": log.pk, "error": str(exc)},
            )
            return SendOrderConfirmationResult(sent=False)

        log.status = EmailLog.STATUS_SENT
        log.to_email = message.to_email
        log.subject = message.subject
        log.sent_at = timezone.now()
        log.save(update_fields=["status", "to_email", "subject", "sent_at"])
        logger.info("order_confirmation_sent", extra={"order_id": order.pk, "email_log_id": log.pk})
        return SendOrderConfirmationResult(sent=True)


def _mark_failed(log: EmailLog, error: str) -> None:
    log.status = EmailLog.STATUS_FAILED
    log.last_error = error[:2000]
    log.save(update_fields=["status", "last_error"])
