from django.db import models


class EmailLog(models.Model):
    KIND_ORDER_CONFIRMATION = "order_confirmation"
    KIND_CHOICES = [
        (KIND_ORDER_CONFIRMATION, "Order confirmation"),
    ]

    STATUS_QUEUED = "queued"
    STATUS_SENT = "sent"
    STATUS_FAILED = "failed"
    STATUS_CHOICES = [
        (STATUS_QUEUED, "Queued"),
        (STATUS_SENT, "Sent"),
        (STATUS_FAILED, "Failed"),
    ]

    order = models.ForeignKey("orders.Order", on_delete=models.CASCADE, related_name="email_logs")
    kind = models.CharField(max_length=40, choices=KIND_CHOICES)
    to_email = models.EmailField(blank=True, default="")
    subject = models.CharField(max_length=255, blank=True, default="")
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_QUEUED)
    last_error = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    sent_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["order", "kind"], name="email_log_once_per_order_kind"),
        ]

    def __str__(self) -> str:
        return f"EmailLog(order_id={self.order_id}, kind={self.kind}, status={self.status})"
