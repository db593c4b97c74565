from __future__ import annotations

from celery import shared_task

from apps.notifications.application.use_cases.send_order_confirmation import (
    SendOrderConfirmationCommand,
    SendOrderConfirmationUseCase,
)


# No autoretry: a confirmation is attempted once and failures stay in EmailLog.
@shared_task(ignore_result=True)
def send_order_confirmation_task(*, email_log_id: int) -> bool:
    result = SendOrderConfirmationUseCase.execute(SendOrderConfirmationCommand(email_log_id=email_log_id))
    return result.sent
