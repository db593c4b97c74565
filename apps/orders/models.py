from decimal import Decimal

from django.conf import settings
from django.db import models

from apps.orders.domain.policies import OrderTotals, assert_totals_consistent
from apps.orders.domain.state_machine import DeliveryOption, OrderStatus
from apps.payments.domain.types import PaymentStatus


class Order(models.Model):
    STATUS_CHOICES = [(status.value, status.name.title()) for status in OrderStatus]
    PAYMENT_STATUS_CHOICES = [(status.value, status.name.title()) for status in PaymentStatus]
    DELIVERY_OPTION_CHOICES = [
        (option.value, option.name.replace("_", " ").title()) for option in DeliveryOption
    ]

    order_number = models.CharField(max_length=40, unique=True)
    buyer = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="orders_placed"
    )
    seller = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="orders_received"
    )
    shipping_address = models.ForeignKey(
        "customers.Address", on_delete=models.PROTECT, null=True, blank=True, related_name="orders"
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=OrderStatus.PENDING.value)
    payment_status = models.CharField(
        max_length=20, choices=PAYMENT_STATUS_CHOICES, default=PaymentStatus.PENDING.value
    )
    subtotal = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    shipping = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    tax = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    discount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    total = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    delivery_option = models.CharField(
        max_length=30, choices=DELIVERY_OPTION_CHOICES, default=DeliveryOption.SELLER_DELIVERY.value
    )
    tracking_number = models.CharField(max_length=100, blank=True, default="")
    notes = models.TextField(blank=True, default="")
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancelled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    cancellation_reason = models.TextField(blank=True, default="")
    paid_at = models.DateTimeField(null=True, blank=True)
    shipped_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return self.order_number

    @property
    def totals(self) -> OrderTotals:
        return OrderTotals(
            subtotal=self.subtotal,
            shipping=self.shipping,
            tax=self.tax,
            discount=self.discount,
            total=self.total,
        )

    def clean(self):
        assert_totals_consistent(self.totals)

    class Meta:
        ordering = ("-created_at", "-id")
        indexes = [
            models.Index(fields=["buyer", "created_at"], name="order_buyer_created_idx"),
            models.Index(fields=["seller", "status"], name="order_seller_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(subtotal__gte=0)
                & models.Q(shipping__gte=0)
                & models.Q(tax__gte=0)
                & models.Q(discount__gte=0)
                & models.Q(total__gte=0),
                name="order_amounts_non_negative",
            ),
        ]


class OrderItem(models.Model):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    product = models.ForeignKey("catalog.Product", on_delete=models.PROTECT, related_name="+")
    quantity = models.PositiveIntegerField()
    price = models.DecimalField(max_digits=10, decimal_places=2)

    class Meta:
        constraints = [
            models.CheckConstraint(condition=models.Q(quantity__gt=0), name="order_item_quantity_positive"),
        ]

    def __str__(self) -> str:
        return f"{self.order} - {self.product} x{self.quantity}"
