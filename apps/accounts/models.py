from __future__ import annotations

from django.conf import settings
from django.db import models


class AccountProfile(models.Model):
    ROLE_BUYER = "BUYER"
    ROLE_SELLER = "SELLER"
    ROLE_ADMIN = "ADMIN"
    ROLE_DELIVERY_PARTNER = "DELIVERY_PARTNER"

    ROLE_CHOICES = [
        (ROLE_BUYER, "Buyer"),
        (ROLE_SELLER, "Seller"),
        (ROLE_ADMIN, "Admin"),
        (ROLE_DELIVERY_PARTNER, "Delivery partner"),
    ]

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="account_profile",
    )
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_BUYER, db_index=True)
    phone = models.CharField(max_length=32, unique=True, null=True, blank=True)
    store_name = models.CharField(max_length=200, blank=True, default="")
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"AccountProfile(user_id={self.user_id}, role={self.role})"
