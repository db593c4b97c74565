from __future__ import annotations

import logging

from apps.notifications.models import EmailLog
from apps.notifications.tasks import send_order_confirmation_task

logger = logging.getLogger("balmuya.notifications")


class OrderNotificationService:
    @staticmethod
    def queue_order_confirmation(*, order_id: int) -> None:
        """
        Queue the confirmation email for a settled order.

        Runs after the settlement transaction commits. Nothing raised here
        reaches the caller: settlement has already happened and must stand.
        """
        try:
            log, created = EmailLog.objects.get_or_create(
                order_id=order_id,
                kind=EmailLog.KIND_ORDER_CONFIRMATION,
            )
            if not created:
                logger.info("order_confirmation_already_queued", extra={"order_id": order_id, "email_log_id": log.pk})
                return
            send_order_confirmation_task.delay(email_log_id=log.pk)
        except Exception:
            logger.exception("order_confirmation_enqueue_failed", extra={"order_id": order_id})
