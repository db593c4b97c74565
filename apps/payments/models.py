"""
Payments models.

Represents payment attempts linked to orders (pending, completed, failed or
refunded).
"""

from django.conf import settings
from django.db import models

from apps.payments.domain.types import PaymentMethod, PaymentStatus


class Payment(models.Model):
    """One attempt to collect the total of an order."""

    STATUS_CHOICES = [(status.value, status.name.title()) for status in PaymentStatus]
    METHOD_CHOICES = [
        (PaymentMethod.CHAPA.value, "Chapa"),
        (PaymentMethod.CBE_BIRR.value, "CBE Birr"),
        (PaymentMethod.STRIPE.value, "Stripe"),
        (PaymentMethod.CASH_ON_DELIVERY.value, "Cash on delivery"),
    ]

    order = models.ForeignKey(
        "orders.Order", on_delete=models.PROTECT, related_name="payments"
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="payments"
    )
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    currency = models.CharField(max_length=8, default="ETB")
    method = models.CharField(max_length=30, choices=METHOD_CHOICES)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=PaymentStatus.PENDING.value)
    transaction_id = models.CharField(max_length=100, unique=True, null=True, blank=True)
    payment_url = models.URLField(max_length=500, blank=True, default="")
    paid_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)
    refund_amount = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-created_at", "-id")
        indexes = [
            models.Index(fields=["order", "status"], name="payment_order_status_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["order"],
                condition=models.Q(status__in=[PaymentStatus.PENDING.value, PaymentStatus.PROCESSING.value]),
                name="payment_one_open_per_order",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.order} - {self.status}"
